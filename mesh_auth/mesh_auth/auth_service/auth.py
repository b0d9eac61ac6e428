from passlib.context import CryptContext

from .config import settings
from .exceptions import MalformedHashError


def build_context(scheme: str = settings.PASSWORD_HASH_SCHEME,
                  rounds: int = settings.PASSWORD_HASH_ROUNDS) -> CryptContext:
    # Every hash embeds its own salt and round count; fewer rounds than
    # configured marks a hash as needing an upgrade
    return CryptContext(
        schemes=[scheme],
        deprecated="auto",
        **{f"{scheme}__default_rounds": rounds, f"{scheme}__min_rounds": rounds},
    )


# Use pbkdf2_sha256 to avoid external bcrypt backend issues in some environments
pwd_context = build_context()


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Check a plaintext password against a stored hash.

    Returns False for a wrong password.

    Raises:
        MalformedHashError: If the stored hash is corrupt or not recognised
    """
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError) as exc:
        raise MalformedHashError(str(exc)) from exc


def needs_rehash(hashed_password: str) -> bool:
    """
    Whether a stored hash uses a deprecated scheme or fewer rounds than configured.

    Callers upgrade such a hash through UserStore.reset_password; authentication
    itself never rewrites it.
    """
    try:
        return pwd_context.needs_update(hashed_password)
    except (ValueError, TypeError) as exc:
        raise MalformedHashError(str(exc)) from exc


def dummy_verify() -> None:
    # Costs as much as a real verify, for rejections that have no stored hash
    pwd_context.dummy_verify()
