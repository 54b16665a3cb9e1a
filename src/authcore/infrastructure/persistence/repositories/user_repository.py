"""User repository for database operations."""

from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from authcore.domain.entities import User, normalize_email
from authcore.domain.exceptions import DuplicateEmailError
from authcore.infrastructure.persistence.database import as_utc
from authcore.infrastructure.persistence.models import UserModel


class UserRepository:
    """Repository for user database operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize the repository.

        Args:
            session: SQLAlchemy async session.
        """
        self.session = session

    @staticmethod
    def _to_entity(model: UserModel, include_hash: bool) -> User:
        return User(
            id=model.id,
            email=model.email,
            first_name=model.first_name,
            last_name=model.last_name,
            password_hash=model.password_hash if include_hash else "",
            roles=list(model.roles or []),
            is_active=model.is_active,
            last_login=as_utc(model.last_login),
            created_at=as_utc(model.created_at),
            updated_at=as_utc(model.updated_at),
        )

    async def create(
        self,
        email: str,
        first_name: str,
        last_name: str,
        password_hash: str,
        roles: list[str] | None = None,
    ) -> User:
        """Create a new user.

        Args:
            email: Email address; stored lower-cased.
            first_name: Given name.
            last_name: Family name.
            password_hash: Already hashed password.
            roles: Role tags. Defaults to ["user"].

        Returns:
            The created user, without its password hash.

        Raises:
            DuplicateEmailError: If the email is already registered.
        """
        email = normalize_email(email)
        model = UserModel(
            email=email,
            first_name=first_name,
            last_name=last_name,
            password_hash=password_hash,
            roles=roles or ["user"],
            is_active=True,
        )
        try:
            async with self.session.begin_nested():
                self.session.add(model)
        except IntegrityError as e:
            raise DuplicateEmailError(email) from e
        return self._to_entity(model, include_hash=False)

    async def find_by_id(self, user_id: str, include_hash: bool = False) -> User | None:
        """Get a user by ID.

        Args:
            user_id: User ID (UUID string).
            include_hash: Whether to load the password hash.

        Returns:
            User if found, None otherwise.
        """
        result = await self.session.execute(select(UserModel).where(UserModel.id == user_id))
        model = result.scalar_one_or_none()
        return self._to_entity(model, include_hash) if model is not None else None

    async def find_by_email(self, email: str, include_hash: bool = False) -> User | None:
        """Get a user by case-insensitive email.

        Args:
            email: User's email address.
            include_hash: Whether to load the password hash.

        Returns:
            User if found, None otherwise.
        """
        result = await self.session.execute(
            select(UserModel).where(UserModel.email == normalize_email(email))
        )
        model = result.scalar_one_or_none()
        return self._to_entity(model, include_hash) if model is not None else None

    async def update_last_login(self, user_id: str) -> datetime:
        """Update the last_login timestamp for a user and return it."""
        now = datetime.now(timezone.utc)
        await self.session.execute(
            update(UserModel).where(UserModel.id == user_id).values(last_login=now)
        )
        return now

    async def update_password_hash(self, user_id: str, password_hash: str) -> None:
        """Replace a user's password hash."""
        await self.session.execute(
            update(UserModel)
            .where(UserModel.id == user_id)
            .values(password_hash=password_hash, updated_at=datetime.now(timezone.utc))
        )

    async def set_active(self, user_id: str, is_active: bool) -> bool:
        """Activate or deactivate a user.

        Returns:
            True if the user exists, False otherwise.
        """
        result = await self.session.execute(
            update(UserModel)
            .where(UserModel.id == user_id)
            .values(is_active=is_active, updated_at=datetime.now(timezone.utc))
        )
        return result.rowcount > 0
