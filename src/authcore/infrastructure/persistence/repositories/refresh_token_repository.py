"""Repository for refresh token operations.

Provides database operations for storing, rotating and revoking refresh
tokens. Revocation is a single conditional UPDATE, so when two callers race
to revoke the same row exactly one of them sees it succeed.
"""

import hashlib
from datetime import datetime, timedelta, timezone

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from authcore.core.logging import get_logger
from authcore.domain.entities import RefreshToken
from authcore.domain.exceptions import ConflictError
from authcore.infrastructure.persistence.database import as_utc
from authcore.infrastructure.persistence.models import RefreshTokenModel

logger = get_logger(__name__)

DEFAULT_RETENTION = timedelta(days=30)


class RefreshTokenRepository:
    """Repository for refresh token database operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize the repository.

        Args:
            session: SQLAlchemy async session.
        """
        self._session = session

    @staticmethod
    def hash_token(token: str) -> str:
        """Hash a token using SHA-256.

        Args:
            token: The signed refresh token string.

        Returns:
            SHA-256 hex digest of the token.
        """
        return hashlib.sha256(token.encode()).hexdigest()

    @staticmethod
    def _to_entity(model: RefreshTokenModel) -> RefreshToken:
        return RefreshToken(
            id=model.id,
            user_id=model.user_id,
            token_hash=model.token_hash,
            expires_at=as_utc(model.expires_at),
            is_revoked=model.is_revoked,
            revoked_at=as_utc(model.revoked_at),
            user_agent=model.user_agent,
            ip_address=model.ip_address,
            created_at=as_utc(model.created_at),
        )

    async def issue(
        self,
        user_id: str,
        token: str,
        expires_at: datetime,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> RefreshToken:
        """Store a newly issued refresh token.

        The insert runs in a savepoint so a collision leaves the surrounding
        transaction intact.

        Args:
            user_id: ID of the owning user.
            token: The signed refresh token.
            expires_at: Absolute expiry of the token.
            user_agent: User agent of the requesting device.
            ip_address: IP address of the requesting device.

        Returns:
            The stored refresh token.

        Raises:
            ConflictError: If a record with the same token value exists.
        """
        model = RefreshTokenModel(
            user_id=user_id,
            token_hash=self.hash_token(token),
            expires_at=expires_at,
            is_revoked=False,
            user_agent=user_agent,
            ip_address=ip_address,
        )
        try:
            async with self._session.begin_nested():
                self._session.add(model)
        except IntegrityError as e:
            logger.warning("Refresh token value collision", user_id=user_id)
            raise ConflictError("Refresh token value already exists") from e
        return self._to_entity(model)

    async def find_by_value(self, token: str, user_id: str) -> RefreshToken | None:
        """Look up a refresh token by value, scoped to its claimed owner.

        Revoked and expired records are returned as well, so callers can
        tell why a token is unusable.

        Args:
            token: The signed refresh token.
            user_id: The owner the token claims to belong to.

        Returns:
            The refresh token if found, None otherwise.
        """
        stmt = select(RefreshTokenModel).where(
            RefreshTokenModel.token_hash == self.hash_token(token),
            RefreshTokenModel.user_id == user_id,
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model is not None else None

    async def revoke(self, token_id: str) -> bool:
        """Revoke a refresh token by ID if it is not revoked yet.

        Args:
            token_id: The token's UUID.

        Returns:
            True if this call revoked the token, False if it was already
            revoked or does not exist.
        """
        stmt = (
            update(RefreshTokenModel)
            .where(
                RefreshTokenModel.id == token_id,
                RefreshTokenModel.is_revoked == False,  # noqa: E712
            )
            .values(is_revoked=True, revoked_at=datetime.now(timezone.utc))
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def revoke_by_value_and_owner(self, token: str, user_id: str) -> bool:
        """Revoke the unrevoked token matching a value and owner.

        Args:
            token: The signed refresh token.
            user_id: The owning user's ID.

        Returns:
            True if a token was revoked, False if nothing matched.
        """
        stmt = (
            update(RefreshTokenModel)
            .where(
                RefreshTokenModel.token_hash == self.hash_token(token),
                RefreshTokenModel.user_id == user_id,
                RefreshTokenModel.is_revoked == False,  # noqa: E712
            )
            .values(is_revoked=True, revoked_at=datetime.now(timezone.utc))
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def revoke_all_for_user(self, user_id: str) -> int:
        """Revoke all unrevoked refresh tokens of a user.

        Args:
            user_id: The user's UUID.

        Returns:
            Number of tokens revoked.
        """
        stmt = (
            update(RefreshTokenModel)
            .where(
                RefreshTokenModel.user_id == user_id,
                RefreshTokenModel.is_revoked == False,  # noqa: E712
            )
            .values(is_revoked=True, revoked_at=datetime.now(timezone.utc))
        )
        result = await self._session.execute(stmt)
        return result.rowcount

    async def count_active_for_user(self, user_id: str) -> int:
        """Count unrevoked, unexpired refresh tokens of a user."""
        stmt = select(func.count(RefreshTokenModel.id)).where(
            RefreshTokenModel.user_id == user_id,
            RefreshTokenModel.is_revoked == False,  # noqa: E712
            RefreshTokenModel.expires_at > datetime.now(timezone.utc),
        )
        result = await self._session.execute(stmt)
        return result.scalar_one() or 0

    async def purge_expired(
        self,
        retention: timedelta = DEFAULT_RETENTION,
        now: datetime | None = None,
    ) -> int:
        """Delete tokens that expired longer than `retention` ago.

        Args:
            retention: How long expired records are kept.
            now: Reference instant. Defaults to now.

        Returns:
            Number of records deleted.
        """
        cutoff = (now or datetime.now(timezone.utc)) - retention
        stmt = (
            delete(RefreshTokenModel)
            .where(RefreshTokenModel.expires_at < cutoff)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        logger.info("Purged expired refresh tokens", count=result.rowcount, cutoff=cutoff.isoformat())
        return result.rowcount
