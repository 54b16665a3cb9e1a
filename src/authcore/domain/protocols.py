"""Interfaces of the collaborators the session manager depends on."""

from datetime import datetime
from typing import Protocol

from authcore.domain.entities import RefreshToken, User


class UserStore(Protocol):
    """Users collaborator.

    Owns user records. The authentication core only reads users, creates
    them on registration, and writes the last-login and password-hash fields.
    """

    async def find_by_email(self, email: str, include_hash: bool = False) -> User | None:
        """Find a user by case-insensitive email."""
        ...

    async def find_by_id(self, user_id: str, include_hash: bool = False) -> User | None:
        """Find a user by ID."""
        ...

    async def create(
        self,
        email: str,
        first_name: str,
        last_name: str,
        password_hash: str,
        roles: list[str] | None = None,
    ) -> User:
        """Create a user. Raises DuplicateEmailError if the email is taken."""
        ...

    async def update_last_login(self, user_id: str) -> datetime:
        """Stamp the last successful login time and return it."""
        ...

    async def update_password_hash(self, user_id: str, password_hash: str) -> None:
        """Replace the stored password hash."""
        ...


class RefreshTokenStore(Protocol):
    """Durable record of issued refresh tokens."""

    async def issue(
        self,
        user_id: str,
        token: str,
        expires_at: datetime,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> RefreshToken:
        """Insert a record. Raises ConflictError on a duplicate token value."""
        ...

    async def find_by_value(self, token: str, user_id: str) -> RefreshToken | None:
        """Look up a record by token value, scoped to its owner."""
        ...

    async def revoke(self, token_id: str) -> bool:
        """Revoke a record if not already revoked. True only for the winning call."""
        ...

    async def revoke_by_value_and_owner(self, token: str, user_id: str) -> bool:
        """Revoke the matching unrevoked record, if any."""
        ...

    async def revoke_all_for_user(self, user_id: str) -> int:
        """Revoke every unrevoked record of a user."""
        ...
