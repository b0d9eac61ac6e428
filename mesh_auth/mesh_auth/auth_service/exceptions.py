"""
Error types for the authentication service.

Store, hasher and notifier errors stay inside the service. The credential
workflow translates them into one of the ``CredentialServiceError`` kinds,
which are the only errors the response writer ever renders.
"""


class StoreError(Exception):
    """Base exception for user store failures."""

    pass


class UserNotFoundError(StoreError):
    """Raised when no user matches the requested email or id."""

    def __init__(self, key):
        self.key = key
        super().__init__(f"No user found for '{key}'")


class DuplicateEmailError(StoreError):
    """Raised when an insert or update collides with an existing email."""

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"A user with email '{email}' already exists")


class UserValidationError(StoreError):
    """Raised when a user record is rejected before or by the database."""

    pass


class StoreTimeoutError(StoreError):
    """Raised when a store operation exceeds its deadline."""

    def __init__(self, operation: str, timeout: float):
        self.operation = operation
        self.timeout = timeout
        super().__init__(f"{operation} exceeded its {timeout:g}s deadline")


class MalformedHashError(Exception):
    """Raised when a stored password hash cannot be parsed."""

    pass


class NotifierUnreachableError(Exception):
    """Raised when the logger service did not accept an event."""

    pass


class CredentialServiceError(Exception):
    """Base exception for errors surfaced to clients.

    Attributes:
        status_code: HTTP status used by the response writer.
        message: Human-readable message, safe to show to the client.
    """

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class BadRequestError(CredentialServiceError):
    status_code = 400
    default_message = "Bad request"


class InvalidCredentialsError(CredentialServiceError):
    status_code = 400
    default_message = "Invalid credentials"

    def __init__(self):
        # Same message for unknown email and wrong password
        super().__init__(self.default_message)


class RegistrationFailedError(CredentialServiceError):
    status_code = 400
    default_message = "Unable to register user"


class ServiceTimeoutError(CredentialServiceError):
    status_code = 500
    default_message = "The request timed out"


class InternalServiceError(CredentialServiceError):
    status_code = 500
    default_message = "Internal server error"
