"""Session manager: registration, login, refresh token rotation and logout.

The manager holds no state between calls. Users, refresh tokens and the
token codec are passed in, and every mutating operation commits its own
unit of work or rolls it back on failure.

Refresh tokens are single use. Each successful refresh revokes the presented
token and issues a replacement, so at most one token per chain is valid at a
time. The revoke is a conditional update in the store, which is what stops
two concurrent refreshes of the same token from both succeeding.
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import AsyncIterator, NoReturn

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from authcore.core.logging import get_logger
from authcore.domain.entities import User, UserView, normalize_email
from authcore.domain.exceptions import (
    ConflictError,
    DuplicateEmailError,
    InactiveAccountError,
    InvalidCredentialsError,
    InvalidTokenError,
    MalformedHashError,
)
from authcore.domain.protocols import RefreshTokenStore, UserStore
from authcore.infrastructure.auth import (
    DEFAULT_COST_FACTOR,
    TokenCodec,
    TokenFailure,
    dummy_password_hash,
    hash_password,
    needs_rehash,
    validate_cost_factor,
    verify_password,
)

logger = get_logger(__name__)

# One retry after a refresh token collision, then give up.
MAX_ISSUE_ATTEMPTS = 2


class RefreshRejection(str, Enum):
    """Internal reason a refresh or access token was rejected.

    Only used for logging; callers always see InvalidTokenError.
    """

    MALFORMED = "malformed"
    EXPIRED = "expired"
    NOT_FOUND = "not_found"
    REVOKED = "revoked"
    RECORD_EXPIRED = "record_expired"
    USER_MISSING = "user_missing"
    USER_INACTIVE = "user_inactive"
    LOST_RACE = "lost_race"


_REPLAY_SIGNALS = frozenset({RefreshRejection.REVOKED, RefreshRejection.LOST_RACE})


@dataclass(frozen=True)
class DeviceContext:
    """Provenance of the request a refresh token is issued to."""

    user_agent: str | None = None
    ip_address: str | None = None


@dataclass(frozen=True)
class TokenPair:
    """Access and refresh token issued together."""

    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class AuthBundle:
    """Result of a successful registration or login."""

    access_token: str
    refresh_token: str
    user: UserView
    expires_in: int
    token_type: str = "Bearer"


class SessionManager:
    """Orchestrates the credential and session protocol."""

    def __init__(
        self,
        session: AsyncSession,
        users: UserStore,
        refresh_tokens: RefreshTokenStore,
        token_codec: TokenCodec,
        password_hash_cost: int = DEFAULT_COST_FACTOR,
    ) -> None:
        """Initialize the session manager.

        Args:
            session: SQLAlchemy async session shared by the stores.
            users: Users collaborator.
            refresh_tokens: Refresh token store.
            token_codec: Codec for signing and verifying tokens.
            password_hash_cost: Cost factor for new password hashes.

        Raises:
            ConfigurationError: If the cost factor is out of range.
        """
        self.session = session
        self.users = users
        self.refresh_tokens = refresh_tokens
        self.token_codec = token_codec
        self.password_hash_cost = validate_cost_factor(password_hash_cost)

    @asynccontextmanager
    async def _unit_of_work(self) -> AsyncIterator[None]:
        try:
            yield
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

    async def register(
        self,
        email: str,
        first_name: str,
        last_name: str,
        password: str,
        device: DeviceContext | None = None,
    ) -> AuthBundle:
        """Create a user and issue its first token pair.

        Raises:
            DuplicateEmailError: If the email is already registered.
        """
        device = device or DeviceContext()
        async with self._unit_of_work():
            if await self.users.find_by_email(email) is not None:
                logger.info("Registration failed: email already registered")
                raise DuplicateEmailError(normalize_email(email))

            user = await self.users.create(
                email=email,
                first_name=first_name,
                last_name=last_name,
                password_hash=hash_password(password, self.password_hash_cost),
            )
            tokens = await self._issue_tokens(user, device)

        logger.info("User registered", user_id=user.id)
        return self._bundle(user, tokens)

    async def login(
        self,
        email: str,
        password: str,
        device: DeviceContext | None = None,
    ) -> AuthBundle:
        """Authenticate a user by password and issue a token pair.

        Unknown emails still pay for a password verification, so response
        timing does not reveal whether an account exists.

        Raises:
            InvalidCredentialsError: If the email is unknown or the password is wrong.
            InactiveAccountError: If the user is deactivated.
        """
        device = device or DeviceContext()
        async with self._unit_of_work():
            user = await self.users.find_by_email(email, include_hash=True)

            if user is None:
                verify_password(password, dummy_password_hash(self.password_hash_cost))
                logger.info("Login failed: user not found")
                raise InvalidCredentialsError()

            if not self._check_password(user, password):
                logger.info("Login failed: invalid password", user_id=user.id)
                raise InvalidCredentialsError()

            if not user.is_active:
                logger.info("Login failed: user inactive", user_id=user.id)
                raise InactiveAccountError()

            if needs_rehash(user.password_hash, self.password_hash_cost):
                await self.users.update_password_hash(
                    user.id, hash_password(password, self.password_hash_cost)
                )
                logger.info("Password hash upgraded", user_id=user.id)

            await self._record_login(user)
            tokens = await self._issue_tokens(user, device)

        logger.info("User logged in", user_id=user.id)
        return self._bundle(user, tokens)

    async def refresh(self, refresh_token: str) -> TokenPair:
        """Rotate a refresh token: revoke it and issue a new pair.

        Every rejection raises the same InvalidTokenError. The specific
        reason is logged and attached to the exception for diagnostics.

        Raises:
            InvalidTokenError: If the token cannot be exchanged.
        """
        async with self._unit_of_work():
            verification = self.token_codec.verify_refresh(refresh_token)
            if not verification.ok:
                reason = (
                    RefreshRejection.EXPIRED
                    if verification.failure is TokenFailure.EXPIRED
                    else RefreshRejection.MALFORMED
                )
                self._reject(reason, detail=verification.detail)

            user_id = verification.claims.sub
            record = await self.refresh_tokens.find_by_value(refresh_token, user_id)
            if record is None:
                self._reject(RefreshRejection.NOT_FOUND, user_id=user_id)
            if record.is_revoked:
                self._reject(RefreshRejection.REVOKED, user_id=user_id, token_id=record.id)
            if record.is_expired():
                self._reject(RefreshRejection.RECORD_EXPIRED, user_id=user_id, token_id=record.id)

            user = await self.users.find_by_id(user_id)
            if user is None:
                self._reject(RefreshRejection.USER_MISSING, user_id=user_id)
            if not user.is_active:
                self._reject(RefreshRejection.USER_INACTIVE, user_id=user_id)

            if not await self.refresh_tokens.revoke(record.id):
                self._reject(RefreshRejection.LOST_RACE, user_id=user_id, token_id=record.id)

            tokens = await self._issue_tokens(
                user,
                DeviceContext(user_agent=record.user_agent, ip_address=record.ip_address),
            )

        logger.info("Refresh token rotated", user_id=user_id, revoked_token_id=record.id)
        return tokens

    async def logout(self, user_id: str, refresh_token: str) -> None:
        """Revoke a refresh token of the given user.

        Unknown, foreign and already revoked tokens are ignored, so logout
        always appears to succeed.
        """
        async with self._unit_of_work():
            revoked = await self.refresh_tokens.revoke_by_value_and_owner(refresh_token, user_id)
        logger.info("User logged out", user_id=user_id, revoked=revoked)

    async def change_password(self, user_id: str, old_password: str, new_password: str) -> int:
        """Replace a user's password and end all of their sessions.

        Returns:
            Number of refresh tokens revoked.

        Raises:
            InvalidCredentialsError: If the user is unknown or inactive, or the
                old password is wrong.
        """
        async with self._unit_of_work():
            user = await self.users.find_by_id(user_id, include_hash=True)
            if user is None or not user.is_active or not self._check_password(user, old_password):
                logger.info("Password change failed", user_id=user_id)
                raise InvalidCredentialsError()

            await self.users.update_password_hash(
                user.id, hash_password(new_password, self.password_hash_cost)
            )
            revoked_count = await self.refresh_tokens.revoke_all_for_user(user.id)

        logger.info("Password changed", user_id=user_id, refresh_tokens_revoked=revoked_count)
        return revoked_count

    async def authenticate(self, access_token: str) -> UserView:
        """Resolve the user behind an access token.

        The user is re-read on every call, so deactivation takes effect
        before the access token expires.

        Raises:
            InvalidTokenError: If the token is invalid or its user is gone or inactive.
        """
        verification = self.token_codec.verify_access(access_token)
        if not verification.ok:
            logger.info("Access token rejected", reason=verification.failure.value)
            raise InvalidTokenError()

        user = await self.users.find_by_id(verification.claims.sub)
        if user is None or not user.is_active:
            logger.info("Access token rejected: user missing or inactive", user_id=verification.claims.sub)
            raise InvalidTokenError(
                RefreshRejection.USER_MISSING if user is None else RefreshRejection.USER_INACTIVE
            )
        return UserView.from_user(user)

    def _check_password(self, user: User, password: str) -> bool:
        try:
            return verify_password(password, user.password_hash)
        except MalformedHashError:
            logger.error("Stored password hash is malformed", user_id=user.id)
            return False

    async def _record_login(self, user: User) -> None:
        # Best effort: a failed stamp must not fail the login.
        try:
            async with self.session.begin_nested():
                user.last_login = await self.users.update_last_login(user.id)
        except SQLAlchemyError as e:
            logger.warning("Failed to update last login", user_id=user.id, error=str(e))

    async def _issue_tokens(self, user: User, device: DeviceContext) -> TokenPair:
        issued_at = datetime.now(timezone.utc).replace(microsecond=0)
        access = self.token_codec.sign_access(user.id, user.email, user.roles, issued_at)

        for attempt in range(1, MAX_ISSUE_ATTEMPTS + 1):
            refresh = self.token_codec.sign_refresh(user.id, issued_at)
            try:
                await self.refresh_tokens.issue(
                    user_id=user.id,
                    token=refresh.token,
                    expires_at=refresh.expires_at,
                    user_agent=device.user_agent,
                    ip_address=device.ip_address,
                )
            except ConflictError:
                logger.warning("Refresh token collision", user_id=user.id, attempt=attempt)
                continue
            return TokenPair(access_token=access.token, refresh_token=refresh.token)

        raise ConflictError("Could not issue a unique refresh token")

    def _bundle(self, user: User, tokens: TokenPair) -> AuthBundle:
        return AuthBundle(
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            user=UserView.from_user(user),
            expires_in=self.token_codec.access_ttl_seconds,
        )

    @staticmethod
    def _reject(reason: RefreshRejection, **context: str) -> NoReturn:
        log = logger.warning if reason in _REPLAY_SIGNALS else logger.info
        log("Refresh token rejected", reason=reason.value, **context)
        raise InvalidTokenError(reason)
