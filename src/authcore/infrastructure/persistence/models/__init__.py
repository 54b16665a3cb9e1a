"""SQLAlchemy models for authcore tables.

All models inherit from the Base class defined in database.py and are
created on application startup in development mode.
"""

from authcore.infrastructure.persistence.models.refresh_token import RefreshTokenModel
from authcore.infrastructure.persistence.models.user import UserModel

__all__ = [
    "RefreshTokenModel",
    "UserModel",
]
