"""Authentication infrastructure components.

This module provides password hashing, the duration grammar, and the
JWT token codec.
"""

from authcore.infrastructure.auth.durations import duration_seconds, parse_duration
from authcore.infrastructure.auth.jwt_service import (
    JWTError,
    TokenCodec,
    TokenExpiredError,
    TokenInvalidError,
    TokenVerification,
    verify,
)
from authcore.infrastructure.auth.password_hasher import (
    DEFAULT_COST_FACTOR,
    MAX_COST_FACTOR,
    MIN_COST_FACTOR,
    dummy_password_hash,
    hash_password,
    needs_rehash,
    validate_cost_factor,
    verify_password,
)
from authcore.infrastructure.auth.token_types import (
    AccessClaims,
    RefreshClaims,
    SignedToken,
    TokenClaims,
    TokenFailure,
)

__all__ = [
    "AccessClaims",
    "DEFAULT_COST_FACTOR",
    "JWTError",
    "MAX_COST_FACTOR",
    "MIN_COST_FACTOR",
    "RefreshClaims",
    "SignedToken",
    "TokenClaims",
    "TokenCodec",
    "TokenExpiredError",
    "TokenFailure",
    "TokenInvalidError",
    "TokenVerification",
    "dummy_password_hash",
    "duration_seconds",
    "hash_password",
    "needs_rehash",
    "parse_duration",
    "validate_cost_factor",
    "verify",
    "verify_password",
]
