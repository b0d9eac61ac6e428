"""
Authentication service - verifies credentials and registers users
"""
from fastapi import FastAPI, Depends, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from typing import Optional
import logging

import httpx
import uvicorn

from .config import Settings, settings as default_settings
from .db import create_db_engine, init_db
from .exceptions import BadRequestError, CredentialServiceError
from .schemas import AuthenticateRequest, RegisterRequest, UserOut, Envelope
from .service import CredentialService
from .store import UserStore
from .utils.activity_notifier import ActivityNotifier
from .utils.log_setup import configure_logging
from .routes import health

logger = logging.getLogger(__name__)


def _envelope(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=Envelope(error=True, message=message).model_dump(),
    )


def get_credential_service(request: Request) -> CredentialService:
    return request.app.state.credential_service


def create_app(
    settings: Optional[Settings] = None,
    notifier_transport: Optional[httpx.BaseTransport] = None,
) -> FastAPI:
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Create the shared engine on startup and release it on shutdown"""
        configure_logging(settings)
        engine = create_db_engine(
            settings.DATABASE_URL,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_TIMEOUT_SECONDS,
        )
        init_db(engine)

        notifier = ActivityNotifier(
            settings.LOGGER_SERVICE_URL,
            timeout=settings.NOTIFIER_TIMEOUT_SECONDS,
            enabled=settings.NOTIFIER_ENABLED,
            workers=settings.NOTIFIER_WORKERS,
            transport=notifier_transport,
        )
        store = UserStore(engine, timeout_seconds=settings.DB_TIMEOUT_SECONDS)

        app.state.engine = engine
        app.state.user_store = store
        app.state.notifier = notifier
        app.state.credential_service = CredentialService(store, notifier)
        logger.info("Authentication service started: port=%s", settings.SERVICE_PORT)
        try:
            yield
        finally:
            notifier.close()
            engine.dispose()
            logger.info("Authentication service stopped")

    app = FastAPI(
        title="Authentication Service",
        description="Credential verification and user registration",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(CredentialServiceError)
    async def credential_error_handler(_request: Request, exc: CredentialServiceError):
        return _envelope(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(_request: Request, exc: RequestValidationError):
        fields = sorted({
            err["loc"][-1] for err in exc.errors()
            if err.get("loc") and isinstance(err["loc"][-1], str) and err["loc"][-1] != "body"
        })
        message = BadRequestError.default_message
        if fields:
            message = f"Invalid or missing field(s): {', '.join(fields)}"
        return _envelope(status.HTTP_400_BAD_REQUEST, message)

    app.include_router(health.router)

    @app.post("/authenticate", response_model=Envelope, status_code=status.HTTP_202_ACCEPTED)
    def authenticate(payload: AuthenticateRequest, service: CredentialService = Depends(get_credential_service)):
        user = service.authenticate(payload.email, payload.password)
        return Envelope(
            error=False,
            message=f"Logged in user {user.email}",
            data=UserOut.model_validate(user).model_dump(mode="json"),
        )

    @app.post("/register", response_model=Envelope, status_code=status.HTTP_202_ACCEPTED)
    def register(payload: RegisterRequest, service: CredentialService = Depends(get_credential_service)):
        user = service.register(
            email=payload.email,
            password=payload.password,
            first_name=payload.firstname,
            last_name=payload.lastname,
            active=payload.active,
        )
        return Envelope(
            error=False,
            message=f"User {user.email} successfully registered",
            data=UserOut.model_validate(user).model_dump(mode="json"),
        )

    return app


app = create_app()


def run() -> None:
    uvicorn.run(app, host="0.0.0.0", port=default_settings.SERVICE_PORT)
