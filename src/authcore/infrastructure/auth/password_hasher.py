"""Password hashing utility using Argon2.

Provides secure password hashing and verification using the Argon2id algorithm,
which is the winner of the Password Hashing Competition and recommended by OWASP.

The cost factor is the base-2 logarithm of the Argon2 memory cost in KiB, so
raising it by one doubles both memory and time spent per hash.
"""

from functools import lru_cache

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

from authcore.domain.exceptions import ConfigurationError, MalformedHashError

MIN_COST_FACTOR = 10
MAX_COST_FACTOR = 16
DEFAULT_COST_FACTOR = 12


def validate_cost_factor(cost_factor: int) -> int:
    """Check that a cost factor is within the supported range.

    Args:
        cost_factor: The requested cost factor.

    Returns:
        The cost factor unchanged.

    Raises:
        ConfigurationError: If the cost factor is not an int in range.
    """
    if (
        not isinstance(cost_factor, int)
        or isinstance(cost_factor, bool)
        or not MIN_COST_FACTOR <= cost_factor <= MAX_COST_FACTOR
    ):
        raise ConfigurationError(
            f"Password hash cost factor must be between {MIN_COST_FACTOR} "
            f"and {MAX_COST_FACTOR}, got {cost_factor!r}"
        )
    return cost_factor


@lru_cache
def _hasher(cost_factor: int) -> PasswordHasher:
    return PasswordHasher(memory_cost=2**cost_factor)


def hash_password(password: str, cost_factor: int = DEFAULT_COST_FACTOR) -> str:
    """Hash a password using Argon2id.

    Args:
        password: The plaintext password to hash.
        cost_factor: Work factor, see module docstring.

    Returns:
        The hashed password string with salt and parameters embedded.

    Raises:
        ConfigurationError: If the cost factor is out of range.

    Example:
        >>> hashed = hash_password("SecureP@ss123!")
        >>> hashed.startswith("$argon2id$")
        True
    """
    return _hasher(validate_cost_factor(cost_factor)).hash(password)


def verify_password(password: str, hashed: str) -> bool:
    """Verify a password against a hash.

    Uses constant-time comparison to prevent timing attacks. The parameters
    are read from the hash itself, so hashes of any cost factor verify.

    Args:
        password: The plaintext password to verify.
        hashed: The hashed password to verify against.

    Returns:
        True if the password matches, False otherwise.

    Raises:
        MalformedHashError: If `hashed` is not an Argon2 hash.

    Example:
        >>> hashed = hash_password("SecureP@ss123!")
        >>> verify_password("SecureP@ss123!", hashed)
        True
        >>> verify_password("wrong", hashed)
        False
    """
    try:
        return _hasher(DEFAULT_COST_FACTOR).verify(hashed, password)
    except VerifyMismatchError:
        return False
    except (InvalidHashError, VerificationError) as e:
        raise MalformedHashError("Stored password hash is not a valid Argon2 hash") from e


def needs_rehash(hashed: str, cost_factor: int = DEFAULT_COST_FACTOR) -> bool:
    """Check if a password hash needs to be rehashed.

    This should be called after successful password verification.
    If True, the password should be rehashed with the current parameters.

    Args:
        hashed: The hashed password to check.
        cost_factor: The currently configured cost factor.

    Returns:
        True if the hash should be updated, False otherwise.

    Raises:
        MalformedHashError: If `hashed` is not an Argon2 hash.
    """
    try:
        return _hasher(validate_cost_factor(cost_factor)).check_needs_rehash(hashed)
    except InvalidHashError as e:
        raise MalformedHashError("Stored password hash is not a valid Argon2 hash") from e


@lru_cache
def dummy_password_hash(cost_factor: int = DEFAULT_COST_FACTOR) -> str:
    """Return a throwaway hash for timing equalisation.

    Verifying against it when a user does not exist costs the same as
    verifying a real password at the same cost factor.
    """
    return hash_password("authcore-dummy-password", cost_factor)
