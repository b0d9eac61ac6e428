from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.exc import SQLAlchemyError
import logging

logger = logging.getLogger(__name__)

Base = declarative_base()


def create_db_engine(
    database_url: str,
    pool_size: int = 5,
    max_overflow: int = 10,
    pool_timeout: float = 3.0,
) -> Engine:
    """
    Create the process-wide engine shared by every request.

    pool_timeout bounds the wait for a free connection and should not exceed
    the store's per-operation deadline.
    """
    pool_args = {"pool_size": pool_size, "max_overflow": max_overflow, "pool_timeout": pool_timeout}
    if database_url.startswith("sqlite"):
        if ":memory:" in database_url or database_url.rstrip("/") == "sqlite:":
            # In-memory SQLite uses a single-connection pool without these options
            return create_engine(database_url, connect_args={"check_same_thread": False})
        return create_engine(database_url, connect_args={"check_same_thread": False}, **pool_args)
    return create_engine(database_url, pool_pre_ping=True, **pool_args)


def init_db(engine: Engine) -> None:
    # Import here to register the models with Base
    from .models import User  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info("Database initialized: tables=%s", ", ".join(Base.metadata.tables))


def check_db_connection(engine: Engine) -> bool:
    """
    Check if database connection is working.

    Returns:
        bool: True if connection is successful, False otherwise
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as e:
        logger.error("Database connection check failed: %s", e)
        return False
