"""Domain services for authcore."""

from authcore.domain.services.session_manager import (
    AuthBundle,
    DeviceContext,
    RefreshRejection,
    SessionManager,
    TokenPair,
)

__all__ = [
    "AuthBundle",
    "DeviceContext",
    "RefreshRejection",
    "SessionManager",
    "TokenPair",
]
