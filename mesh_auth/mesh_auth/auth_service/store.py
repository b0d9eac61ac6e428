"""
User store: CRUD operations on the users table.

Every operation runs in its own session and transaction and is bounded by a
wall-clock deadline. When the deadline passes, the in-flight driver call is
interrupted, the transaction is rolled back and StoreTimeoutError is raised,
so a timed-out write is never visible to later reads.
"""
import logging
import threading
import time
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, List, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, sessionmaker

from .auth import hash_password
from .exceptions import (
    DuplicateEmailError,
    StoreError,
    StoreTimeoutError,
    UserNotFoundError,
    UserValidationError,
)
from .models import User

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 3.0


def normalize_email(email: Optional[str]) -> str:
    """Emails are compared case-insensitively."""
    return (email or "").strip().lower()


class OperationDeadline:
    """Interrupts the driver call of one store operation once its time is up.

    The abort and ``finish`` share a lock, so once the operation has finished
    the connection can go back to the pool without a late interrupt hitting
    another request's statement.
    """

    def __init__(self, dbapi_connection, seconds: float):
        self._connection = dbapi_connection
        self._lock = threading.Lock()
        self._finished = False
        self.expired = False
        self._timer = threading.Timer(seconds, self.abort)
        self._timer.daemon = True

    def start(self) -> None:
        self._timer.start()

    def abort(self) -> None:
        with self._lock:
            if self._finished:
                return
            self.expired = True
            # sqlite3 exposes interrupt(), PostgreSQL drivers expose cancel()
            abort = getattr(self._connection, "interrupt", None) or getattr(self._connection, "cancel", None)
            if abort is not None:
                abort()

    def finish(self) -> None:
        with self._lock:
            self._finished = True
        self._timer.cancel()


class UserStore:
    """Bounded-time access to persisted users.

    The engine is created once at startup and shared by all requests; the
    store holds no other state. Returned users are detached copies.
    """

    def __init__(self, engine: Engine, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS):
        self.engine = engine
        self.timeout = timeout_seconds
        self._session_factory = sessionmaker(
            bind=engine,
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
        )

    @contextmanager
    def _operation(self, name: str) -> Iterator[Session]:
        session = self._session_factory()
        deadline = None
        started = time.monotonic()
        try:
            # Checkout waits at most the engine's pool_timeout
            dbapi_connection = session.connection().connection.dbapi_connection
            remaining = self.timeout - (time.monotonic() - started)
            if remaining <= 0:
                raise StoreTimeoutError(name, self.timeout)
            deadline = OperationDeadline(dbapi_connection, remaining)
            deadline.start()

            yield session

            if deadline.expired:
                raise StoreTimeoutError(name, self.timeout)
            session.commit()
        except StoreTimeoutError:
            session.rollback()
            logger.warning("%s exceeded its %ss deadline, rolled back", name, self.timeout)
            raise
        except Exception as exc:
            session.rollback()
            if isinstance(exc, PoolTimeoutError) or (deadline is not None and deadline.expired):
                logger.warning("%s exceeded its %ss deadline, rolled back", name, self.timeout)
                raise StoreTimeoutError(name, self.timeout) from exc
            if isinstance(exc, SQLAlchemyError):
                logger.error("%s failed: %s", name, exc)
                raise StoreError(f"{name} failed") from exc
            raise
        finally:
            if deadline is not None:
                deadline.finish()
            session.close()

    @staticmethod
    def _integrity_error(exc: IntegrityError, email: str) -> StoreError:
        if "unique" in str(exc.orig).lower():
            return DuplicateEmailError(email)
        return UserValidationError(str(exc.orig))

    def get_all(self) -> List[User]:
        """Return all users sorted by last name."""
        with self._operation("get_all") as session:
            users = session.query(User).order_by(User.last_name.asc(), User.id.asc()).all()
        logger.debug("Fetched %s users", len(users))
        return users

    def get_by_email(self, email: str) -> User:
        """
        Look up one user by email.

        Raises:
            UserNotFoundError: If no user has that email
            StoreTimeoutError: If the lookup exceeds the deadline
        """
        email = normalize_email(email)
        logger.debug("Executing get_by_email with email: %s", email)
        with self._operation("get_by_email") as session:
            user = session.query(User).filter(User.email == email).first()
        if user is None:
            logger.info("No user found with email: %s", email)
            raise UserNotFoundError(email)
        logger.debug("User found with email: %s, id: %s", user.email, user.id)
        return user

    def get_one(self, user_id: int) -> User:
        with self._operation("get_one") as session:
            user = session.query(User).filter(User.id == user_id).first()
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    def insert(
        self,
        email: str,
        password: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        active: bool = True,
    ) -> int:
        """
        Hash the plaintext password and insert a new user.

        Args:
            email: Login email, normalized before writing
            password: Plaintext password; only its hash is stored
            first_name: Optional display name
            last_name: Optional display name
            active: Account flag

        Returns:
            The id assigned by the database

        Raises:
            UserValidationError: If email or password is empty
            DuplicateEmailError: If the email is already registered
            StoreTimeoutError: If the insert exceeds the deadline
        """
        email = normalize_email(email)
        if not email:
            raise UserValidationError("email is required")
        if not password:
            raise UserValidationError("password is required")

        hashed = hash_password(password)
        now = datetime.utcnow()

        logger.info("Inserting user: %s, %s, %s", email, first_name, last_name)
        with self._operation("insert") as session:
            user = User(
                email=email,
                first_name=first_name,
                last_name=last_name,
                password_hash=hashed,
                active=bool(active),
                created_at=now,
                updated_at=now,
            )
            session.add(user)
            try:
                session.flush()
            except IntegrityError as exc:
                raise self._integrity_error(exc, email) from exc
            new_id = user.id
        return new_id

    def update(self, user: User) -> None:
        """
        Replace email, names and active flag of an existing user.

        The password hash is left untouched; use reset_password for that.
        """
        email = normalize_email(user.email)
        if not email:
            raise UserValidationError("email is required")
        now = datetime.utcnow()

        with self._operation("update") as session:
            try:
                updated = session.query(User).filter(User.id == user.id).update(
                    {
                        User.email: email,
                        User.first_name: user.first_name,
                        User.last_name: user.last_name,
                        User.active: bool(user.active),
                        User.updated_at: now,
                    },
                    synchronize_session=False,
                )
            except IntegrityError as exc:
                raise self._integrity_error(exc, email) from exc
            if not updated:
                raise UserNotFoundError(user.id)

        user.email = email
        user.updated_at = now
        logger.info("Updated user: id=%s", user.id)

    def reset_password(self, user_id: int, password: str) -> None:
        """Re-hash and store a new password; no other column changes."""
        if not password:
            raise UserValidationError("password is required")
        hashed = hash_password(password)

        with self._operation("reset_password") as session:
            updated = session.query(User).filter(User.id == user_id).update(
                {User.password_hash: hashed},
                synchronize_session=False,
            )
            if not updated:
                raise UserNotFoundError(user_id)
        logger.info("Password reset: id=%s", user_id)

    def delete(self, user: User) -> None:
        self.delete_by_id(user.id)

    def delete_by_id(self, user_id: int) -> None:
        with self._operation("delete") as session:
            deleted = session.query(User).filter(User.id == user_id).delete(synchronize_session=False)
            if not deleted:
                raise UserNotFoundError(user_id)
        logger.info("Deleted user: id=%s", user_id)
