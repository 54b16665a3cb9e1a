"""JWT token service.

Signs and verifies access and refresh tokens. The two kinds use separate
secrets and lifetimes, so leaking one secret does not compromise the other.

Verification never raises for a bad token. It returns a TokenVerification
result that names the failure, and callers decide what to do with it.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable

import jwt
from pydantic import ValidationError

from authcore.domain.exceptions import ConfigurationError
from authcore.infrastructure.auth.durations import parse_duration
from authcore.infrastructure.auth.token_types import (
    AccessClaims,
    RefreshClaims,
    SignedToken,
    TokenFailure,
    token_claims_adapter,
)

ALGORITHM = "HS256"
ISSUER = "authcore"


class JWTError(Exception):
    """Base exception for JWT-related errors."""

    pass


class TokenExpiredError(JWTError):
    """Raised when a token has expired."""

    pass


class TokenInvalidError(JWTError):
    """Raised when a token signature or structure is invalid."""

    pass


@dataclass(frozen=True)
class TokenVerification:
    """Outcome of verifying a token.

    Exactly one of ``claims`` and ``failure`` is set.
    """

    claims: AccessClaims | RefreshClaims | None = None
    failure: TokenFailure | None = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.failure is None

    def unwrap(self) -> AccessClaims | RefreshClaims:
        """Return the claims or raise the error matching the failure.

        Raises:
            TokenExpiredError: If the token has expired.
            TokenInvalidError: If the token is invalid.
        """
        if self.failure is TokenFailure.EXPIRED:
            raise TokenExpiredError(self.detail or "Token has expired")
        if self.failure is TokenFailure.INVALID:
            raise TokenInvalidError(self.detail or "Invalid token")
        return self.claims


def _utcnow() -> datetime:
    # JWT timestamps have second precision; truncating keeps the embedded
    # expiry equal to the persisted one.
    return datetime.now(timezone.utc).replace(microsecond=0)


def _sign(claims: AccessClaims | RefreshClaims, secret: str) -> str:
    payload = claims.model_dump(mode="json")
    payload["iss"] = ISSUER
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def verify(
    token: str,
    secret: str,
    expected: type[AccessClaims] | type[RefreshClaims] | None = None,
) -> TokenVerification:
    """Verify a token's signature, expiry and claim structure.

    Args:
        token: The encoded token.
        secret: Secret of the signing context the token should belong to.
        expected: Claim type the token must carry, if any.

    Returns:
        TokenVerification with either the claims or the failure kind.
    """
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[ALGORITHM],
            issuer=ISSUER,
            options={"require": ["exp", "iat", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        return TokenVerification(failure=TokenFailure.EXPIRED, detail="Token has expired")
    except jwt.InvalidTokenError as e:
        return TokenVerification(failure=TokenFailure.INVALID, detail=str(e) or "Invalid token")

    try:
        claims = token_claims_adapter.validate_python(payload)
    except ValidationError:
        return TokenVerification(failure=TokenFailure.INVALID, detail="Malformed token claims")

    if expected is not None and not isinstance(claims, expected):
        detail = "Not a refresh token" if expected is RefreshClaims else "Not an access token"
        return TokenVerification(failure=TokenFailure.INVALID, detail=detail)

    return TokenVerification(claims=claims)


class TokenCodec:
    """Service for signing and verifying access and refresh tokens.

    Attributes:
        access_ttl: Lifetime of access tokens.
        refresh_ttl: Lifetime of refresh tokens.
    """

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        access_ttl: str = "15m",
        refresh_ttl: str = "7d",
    ) -> None:
        """Initialize the codec.

        Args:
            access_secret: Secret for signing access tokens.
            refresh_secret: Secret for signing refresh tokens.
            access_ttl: Access token lifetime, e.g. "15m".
            refresh_ttl: Refresh token lifetime, e.g. "7d".

        Raises:
            ConfigurationError: If a secret is empty or a TTL is malformed.
        """
        if not access_secret or not refresh_secret:
            raise ConfigurationError("Access and refresh secrets are required")
        self._access_secret = access_secret
        self._refresh_secret = refresh_secret
        self.access_ttl = parse_duration(access_ttl)
        self.refresh_ttl = parse_duration(refresh_ttl)

    @property
    def access_ttl_seconds(self) -> int:
        """Access token lifetime in seconds."""
        return int(self.access_ttl.total_seconds())

    def sign_access(
        self,
        user_id: str,
        email: str,
        roles: Iterable[str],
        issued_at: datetime | None = None,
    ) -> SignedToken:
        """Create an access token.

        Args:
            user_id: The user's unique identifier.
            email: The user's email address.
            roles: The user's role tags.
            issued_at: Issue instant. Defaults to now.

        Returns:
            The signed token with its claims and expiry.
        """
        now = (issued_at or _utcnow()).replace(microsecond=0)
        expires_at = now + self.access_ttl
        claims = AccessClaims(
            sub=user_id,
            email=email,
            roles=tuple(roles),
            iat=int(now.timestamp()),
            exp=int(expires_at.timestamp()),
        )
        return SignedToken(
            token=_sign(claims, self._access_secret),
            claims=claims,
            expires_at=expires_at,
        )

    def sign_refresh(self, user_id: str, issued_at: datetime | None = None) -> SignedToken:
        """Create a refresh token with a fresh random identifier.

        Args:
            user_id: The user's unique identifier.
            issued_at: Issue instant. Defaults to now.

        Returns:
            The signed token with its claims and expiry.
        """
        now = (issued_at or _utcnow()).replace(microsecond=0)
        expires_at = now + self.refresh_ttl
        claims = RefreshClaims(
            sub=user_id,
            jti=uuid.uuid4().hex,
            iat=int(now.timestamp()),
            exp=int(expires_at.timestamp()),
        )
        return SignedToken(
            token=_sign(claims, self._refresh_secret),
            claims=claims,
            expires_at=expires_at,
        )

    def verify_access(self, token: str) -> TokenVerification:
        """Verify an access token against the access secret."""
        return verify(token, self._access_secret, AccessClaims)

    def verify_refresh(self, token: str) -> TokenVerification:
        """Verify a refresh token against the refresh secret."""
        return verify(token, self._refresh_secret, RefreshClaims)
