"""Refresh token entity.

A persisted record of an issued refresh token. Records are revoked rather
than deleted, and a revoked record never becomes usable again.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass
class RefreshToken:
    """Refresh token entity.

    Attributes:
        id: Unique identifier (UUID string).
        user_id: ID of the owning user.
        token_hash: SHA-256 hash of the signed refresh token.
        expires_at: When the token expires.
        is_revoked: Whether the token has been revoked.
        revoked_at: When the token was revoked (null if not revoked).
        user_agent: User agent of the device the token was issued to.
        ip_address: IP address the token was issued to.
        created_at: When the token was created.
    """

    id: str
    user_id: str
    token_hash: str
    expires_at: datetime
    is_revoked: bool = False
    revoked_at: datetime | None = None
    user_agent: str | None = None
    ip_address: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check if the token is past its expiry."""
        now = now or datetime.now(timezone.utc)
        return self.expires_at <= now

    def is_active(self, now: datetime | None = None) -> bool:
        """Check if the token is valid (not revoked and not expired)."""
        return not self.is_revoked and not self.is_expired(now)
