"""Parsing of compact duration strings such as "15m" or "7d".

The same parser is used for token TTLs and for the expiry stored next to
each refresh token, so both always agree on what a unit means.
"""

import re
from datetime import timedelta

from authcore.domain.exceptions import ConfigurationError

_DURATION_PATTERN = re.compile(r"([0-9]+)([smhd])")

_UNIT_SECONDS = {
    "s": 1,
    "m": 60,
    "h": 60 * 60,
    "d": 24 * 60 * 60,
}


def parse_duration(value: str) -> timedelta:
    """Parse a duration string into a timedelta.

    Args:
        value: An integer followed by one of s, m, h or d.

    Returns:
        The duration as a timedelta.

    Raises:
        ConfigurationError: If the string does not match the grammar.

    Example:
        >>> parse_duration("15m")
        datetime.timedelta(seconds=900)
    """
    if not isinstance(value, str):
        raise ConfigurationError(f"Invalid duration: {value!r}")

    match = _DURATION_PATTERN.fullmatch(value)
    if match is None:
        raise ConfigurationError(
            f"Invalid duration {value!r}: expected <integer><s|m|h|d>"
        )

    amount, unit = match.groups()
    return timedelta(seconds=int(amount) * _UNIT_SECONDS[unit])


def duration_seconds(value: str) -> int:
    """Return a duration string as a whole number of seconds."""
    return int(parse_duration(value).total_seconds())
