"""Domain entities for authcore."""

from authcore.domain.entities.refresh_token import RefreshToken
from authcore.domain.entities.user import User, UserView, normalize_email

__all__ = [
    "RefreshToken",
    "User",
    "UserView",
    "normalize_email",
]
