"""
Credential workflow: authentication and registration.

Pure business logic with no HTTP dependencies. Store, hasher and notifier
errors are translated here into CredentialServiceError kinds that route
handlers render as JSON envelopes.
"""
import logging
from typing import Optional

from .auth import dummy_verify, verify_password
from .exceptions import (
    BadRequestError,
    DuplicateEmailError,
    InternalServiceError,
    InvalidCredentialsError,
    MalformedHashError,
    RegistrationFailedError,
    ServiceTimeoutError,
    StoreError,
    StoreTimeoutError,
    UserNotFoundError,
    UserValidationError,
)
from .models import User
from .store import UserStore, normalize_email
from .utils.activity_notifier import ActivityNotifier

logger = logging.getLogger(__name__)

AUTHENTICATION_EVENT = "authentication"


def _require(**fields) -> None:
    missing = [name for name, value in fields.items() if not value or not str(value).strip()]
    if missing:
        raise BadRequestError(f"Missing required field(s): {', '.join(missing)}")


class CredentialService:
    """Turns an email/password pair into an authenticated or new user."""

    def __init__(self, store: UserStore, notifier: Optional[ActivityNotifier] = None):
        self.store = store
        self.notifier = notifier

    def authenticate(self, email: str, password: str) -> User:
        """
        Verify an email/password pair.

        Unknown email, store failure and wrong password all raise the same
        InvalidCredentialsError after comparable hashing work, so callers cannot
        tell which accounts exist.

        Raises:
            BadRequestError: If email or password is missing
            InvalidCredentialsError: For any rejection
        """
        _require(email=email, password=password)
        email = normalize_email(email)

        try:
            user = self.store.get_by_email(email)
        except UserNotFoundError:
            logger.info("Authentication rejected: unknown email %s", email)
            dummy_verify()
            raise InvalidCredentialsError()
        except StoreError as exc:
            logger.error("Authentication lookup failed for %s: %s", email, exc)
            dummy_verify()
            raise InvalidCredentialsError() from exc

        try:
            matched = verify_password(password, user.password_hash)
        except MalformedHashError as exc:
            logger.error("Stored password hash is malformed: user_id=%s", user.id)
            raise InvalidCredentialsError() from exc

        if not matched:
            logger.info("Authentication rejected: wrong password for user_id=%s", user.id)
            raise InvalidCredentialsError()

        logger.info("Successful login: user_id=%s, email=%s", user.id, user.email)
        if self.notifier is not None:
            self.notifier.dispatch(AUTHENTICATION_EVENT, f"{user.email} logged in")
        return user

    def register(
        self,
        email: str,
        password: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        active: bool = True,
    ) -> User:
        """
        Create a user and return the record as stored.

        Raises:
            BadRequestError: If email or password is missing
            RegistrationFailedError: On duplicate email or rejected record
            ServiceTimeoutError: If the store deadline is exceeded
            InternalServiceError: On any other store failure
        """
        _require(email=email, password=password)

        try:
            user_id = self.store.insert(
                email=email,
                password=password,
                first_name=first_name,
                last_name=last_name,
                active=active,
            )
        except DuplicateEmailError as exc:
            logger.info("Registration rejected: %s", exc)
            raise RegistrationFailedError("A user with that email already exists") from exc
        except UserValidationError as exc:
            logger.info("Registration rejected: %s", exc)
            raise RegistrationFailedError() from exc
        except StoreTimeoutError as exc:
            logger.error("Error inserting user into database: %s", exc)
            raise ServiceTimeoutError() from exc
        except StoreError as exc:
            logger.error("Error inserting user into database: %s", exc)
            raise InternalServiceError("Unable to insert user into database") from exc

        try:
            user = self.store.get_one(user_id)
        except StoreTimeoutError as exc:
            logger.error("Reading back user_id=%s timed out: %s", user_id, exc)
            raise ServiceTimeoutError() from exc
        except StoreError as exc:
            logger.error("User not found after insert: user_id=%s, error=%s", user_id, exc)
            raise InternalServiceError("User not found after insert") from exc

        logger.info("Registered user: user_id=%s, email=%s", user.id, user.email)
        return user
