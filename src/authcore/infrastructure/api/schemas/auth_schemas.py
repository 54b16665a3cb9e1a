"""Pydantic schemas for authentication endpoints."""

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field


class RegisterRequest(BaseModel):
    """Request body for user registration."""

    email: EmailStr = Field(..., description="User's email address")
    first_name: str = Field(..., min_length=2, max_length=100, description="Given name")
    last_name: str = Field(..., min_length=2, max_length=100, description="Family name")
    password: str = Field(..., min_length=8, max_length=128, description="User's password")


class LoginRequest(BaseModel):
    """Request body for login."""

    email: EmailStr = Field(..., description="User's email address")
    password: str = Field(..., min_length=1, description="User's password")


class RefreshRequest(BaseModel):
    """Request body carrying a refresh token (refresh and logout)."""

    refresh_token: str = Field(..., min_length=1, description="Refresh token")


class ChangePasswordRequest(BaseModel):
    """Request body for changing the current user's password."""

    old_password: str = Field(..., min_length=1, description="Current password")
    new_password: str = Field(..., min_length=8, max_length=128, description="New password")


class UserResponse(BaseModel):
    """User information in auth responses. Never includes the password."""

    id: str = Field(..., description="User ID")
    email: str = Field(..., description="User's email address")
    first_name: str = Field(..., description="Given name")
    last_name: str = Field(..., description="Family name")
    roles: list[str] = Field(..., description="Role tags")
    is_active: bool = Field(..., description="Whether the user is active")
    last_login: datetime | None = Field(None, description="Last successful login")
    created_at: datetime = Field(..., description="When the user was created")
    updated_at: datetime = Field(..., description="When the user was last updated")

    model_config = {"from_attributes": True}


class AuthResponse(BaseModel):
    """Response for successful authentication (login/register)."""

    access_token: str = Field(..., description="JWT access token")
    refresh_token: str = Field(..., description="JWT refresh token")
    token_type: str = Field("Bearer", description="Authorization scheme")
    expires_in: int = Field(..., description="Access token expiration time in seconds")
    user: UserResponse = Field(..., description="User information")

    model_config = {"from_attributes": True}


class TokenPairResponse(BaseModel):
    """Response for a successful token refresh."""

    access_token: str = Field(..., description="JWT access token")
    refresh_token: str = Field(..., description="JWT refresh token")

    model_config = {"from_attributes": True}


class MessageResponse(BaseModel):
    """Plain acknowledgement."""

    message: str


class ErrorResponse(BaseModel):
    """Response for failed requests."""

    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Human-readable error message")
