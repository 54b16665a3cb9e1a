"""Exception taxonomy for the authentication core.

Every business failure raised by the session manager derives from AuthError,
so the HTTP layer can translate them into status codes in a single place.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from authcore.domain.services.session_manager import RefreshRejection


class AuthError(Exception):
    """Base exception for authentication failures."""

    pass


class DuplicateEmailError(AuthError):
    """Raised when registering an email that is already taken."""

    def __init__(self, email: str) -> None:
        self.email = email
        super().__init__("Email is already registered")


class InvalidCredentialsError(AuthError):
    """Raised when an email/password pair does not authenticate.

    Unknown emails and wrong passwords produce the same error.
    """

    def __init__(self) -> None:
        super().__init__("Invalid credentials")


class InactiveAccountError(AuthError):
    """Raised when an inactive user tries to log in."""

    def __init__(self) -> None:
        super().__init__("User account is inactive")


class InvalidTokenError(AuthError):
    """Raised for every rejected token.

    The reason is kept for logging only and must never be shown to clients.

    Attributes:
        reason: Internal classification of the rejection, if known.
    """

    def __init__(self, reason: "RefreshRejection | None" = None) -> None:
        self.reason = reason
        super().__init__("Invalid or expired token")


class ConflictError(AuthError):
    """Raised when a refresh token value collides with an existing one."""

    pass


class ConfigurationError(AuthError):
    """Raised for invalid configuration (TTL strings, cost factor, secrets)."""

    pass


class MalformedHashError(AuthError):
    """Raised when a stored password hash is not a recognizable Argon2 hash."""

    pass
