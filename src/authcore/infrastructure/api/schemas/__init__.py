"""API request and response schemas."""

from authcore.infrastructure.api.schemas.auth_schemas import (
    AuthResponse,
    ChangePasswordRequest,
    ErrorResponse,
    LoginRequest,
    MessageResponse,
    RefreshRequest,
    RegisterRequest,
    TokenPairResponse,
    UserResponse,
)

__all__ = [
    "AuthResponse",
    "ChangePasswordRequest",
    "ErrorResponse",
    "LoginRequest",
    "MessageResponse",
    "RefreshRequest",
    "RegisterRequest",
    "TokenPairResponse",
    "UserResponse",
]
