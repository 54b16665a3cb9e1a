"""User entity for authentication.

Users are uniquely identified by their case-normalized email.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone


def normalize_email(email: str) -> str:
    """Return the canonical form of an email used for uniqueness checks."""
    return email.strip().lower()


@dataclass
class User:
    """User entity as seen by the authentication core.

    Attributes:
        id: Unique identifier (UUID string).
        email: User's email address, lower-cased.
        first_name: Given name.
        last_name: Family name.
        password_hash: Hashed password. Empty when loaded without the hash.
        roles: Role tags granted to the user.
        is_active: Whether the user may authenticate.
        last_login: Timestamp of last successful login (nullable).
        created_at: Timestamp when the user was created.
        updated_at: Timestamp when the user was last updated.
    """

    id: str
    email: str
    first_name: str
    last_name: str
    password_hash: str = field(default="", repr=False)
    roles: list[str] = field(default_factory=lambda: ["user"])
    is_active: bool = True
    last_login: datetime | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        """Validate user data after initialization."""
        if not self.id:
            raise ValueError("User ID is required")
        if not self.email:
            raise ValueError("Email is required")


@dataclass(frozen=True)
class UserView:
    """Outward-facing view of a user. Never carries the password hash."""

    id: str
    email: str
    first_name: str
    last_name: str
    roles: list[str]
    is_active: bool
    last_login: datetime | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_user(cls, user: User) -> "UserView":
        return cls(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            roles=list(user.roles),
            is_active=user.is_active,
            last_login=user.last_login,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )
