"""Authentication API routes.

Thin HTTP adapters over SessionManager. Business errors propagate as
AuthError subclasses and are turned into responses by the handlers
registered in app.py.
"""

from fastapi import APIRouter, status

from authcore.core.logging import get_logger
from authcore.infrastructure.api.dependencies import (
    AuthenticatedUser,
    DeviceContextDep,
    SessionManagerDep,
)
from authcore.infrastructure.api.schemas import (
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

logger = get_logger(__name__)

router = APIRouter()


@router.post(
    "/register",
    status_code=status.HTTP_201_CREATED,
    response_model=AuthResponse,
    responses={409: {"model": ErrorResponse, "description": "Email already registered"}},
)
async def register(
    request: RegisterRequest,
    manager: SessionManagerDep,
    device: DeviceContextDep,
) -> AuthResponse:
    """Register a new user and return its first token pair."""
    bundle = await manager.register(
        email=request.email,
        first_name=request.first_name,
        last_name=request.last_name,
        password=request.password,
        device=device,
    )
    return AuthResponse.model_validate(bundle)


@router.post(
    "/login",
    response_model=AuthResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid credentials"},
        403: {"model": ErrorResponse, "description": "Account inactive"},
    },
)
async def login(
    request: LoginRequest,
    manager: SessionManagerDep,
    device: DeviceContextDep,
) -> AuthResponse:
    """Authenticate with email and password."""
    bundle = await manager.login(email=request.email, password=request.password, device=device)
    return AuthResponse.model_validate(bundle)


@router.post(
    "/refresh",
    response_model=TokenPairResponse,
    responses={401: {"model": ErrorResponse, "description": "Invalid or expired token"}},
)
async def refresh(request: RefreshRequest, manager: SessionManagerDep) -> TokenPairResponse:
    """Exchange a refresh token for a new token pair."""
    tokens = await manager.refresh(request.refresh_token)
    return TokenPairResponse.model_validate(tokens)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: RefreshRequest,
    current_user: AuthenticatedUser,
    manager: SessionManagerDep,
) -> MessageResponse:
    """Revoke a refresh token of the current user."""
    await manager.logout(current_user.id, request.refresh_token)
    return MessageResponse(message="Logout successful")


@router.post(
    "/change-password",
    response_model=MessageResponse,
    responses={401: {"model": ErrorResponse, "description": "Invalid credentials"}},
)
async def change_password(
    request: ChangePasswordRequest,
    current_user: AuthenticatedUser,
    manager: SessionManagerDep,
) -> MessageResponse:
    """Change the current user's password and sign out all devices."""
    await manager.change_password(current_user.id, request.old_password, request.new_password)
    return MessageResponse(message="Password changed successfully")


@router.get("/me", response_model=UserResponse)
async def me(current_user: AuthenticatedUser) -> UserResponse:
    """Return the current user."""
    return UserResponse.model_validate(current_user)
