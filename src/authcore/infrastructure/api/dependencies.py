"""FastAPI dependencies for authentication.

Builds a SessionManager per request and resolves the current user from the
Authorization header.
"""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from authcore.core.config import Settings, get_settings
from authcore.core.logging import get_logger
from authcore.domain.entities import UserView
from authcore.domain.services import DeviceContext, SessionManager
from authcore.infrastructure.persistence.database import get_db_session
from authcore.infrastructure.persistence.repositories import (
    RefreshTokenRepository,
    UserRepository,
)

logger = get_logger(__name__)


def get_session_manager(
    session: Annotated[AsyncSession, Depends(get_db_session)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> SessionManager:
    """Build a session manager bound to the request's database session."""
    return SessionManager(
        session=session,
        users=UserRepository(session),
        refresh_tokens=RefreshTokenRepository(session),
        token_codec=settings.token_codec(),
        password_hash_cost=settings.password_hash_cost,
    )


def get_device_context(request: Request) -> DeviceContext:
    """Extract provenance metadata from the request."""
    return DeviceContext(
        user_agent=request.headers.get("user-agent"),
        ip_address=request.client.host if request.client else None,
    )


async def get_current_user(
    manager: Annotated[SessionManager, Depends(get_session_manager)],
    authorization: Annotated[str | None, Header()] = None,
) -> UserView:
    """Extract and validate the current user from the Authorization header.

    Raises:
        HTTPException: 401 if the header is missing or malformed.
        InvalidTokenError: If the token is invalid or the user inactive.
    """
    if authorization is None:
        logger.info("Authentication failed: missing Authorization header")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        logger.info("Authentication failed: invalid Authorization header format")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return await manager.authenticate(parts[1])


SessionManagerDep = Annotated[SessionManager, Depends(get_session_manager)]
DeviceContextDep = Annotated[DeviceContext, Depends(get_device_context)]
AuthenticatedUser = Annotated[UserView, Depends(get_current_user)]
