from abc import ABC


class UserError(ABC, Exception):
    """Base class for user-related errors.

    All errors that inherit from UserError will have their messages
    displayed to the user. These errors should not contain any
    sensitive information.
    """


class NotFoundError(UserError):
    """Raised when a requested resource is not found."""

    def __init__(self, message: str = "Document not found") -> None:
        super().__init__(message)


class AuthenticationError(UserError):
    """Raised when authentication fails."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)


class SessionRequiredError(AuthenticationError):
    """Raised when a route needs a live session and the request has none."""


class InvalidCredentialsError(AuthenticationError):
    """Raised for every credential rejection.

    The message is the same whether the identity is unknown, the password is
    wrong or the stored credential is unusable, so callers cannot enumerate
    accounts.
    """

    def __init__(self) -> None:
        super().__init__("Invalid email or password")


class AccessDeniedError(UserError):
    """Raised when a user tries to access a resource they do not have permission for."""


class ValidationError(UserError):
    """Raised when user input fails validation."""


class InfrastructureError(Exception):
    """Base class for failures of the backing services.

    Messages of these errors are never shown to the user.
    """


class StorageUnavailableError(InfrastructureError):
    """Raised when the backing store cannot be reached."""

    def __init__(self, message: str = "Storage unavailable") -> None:
        super().__init__(message)


class TransientFailureError(InfrastructureError):
    """Raised for failures that are worth a bounded retry."""


class TransactionAbortedError(InfrastructureError):
    """Raised inside the transaction service when a transaction is rolled back."""
