"""authcore - credential and session authority.

Password hashing, signed access/refresh tokens, refresh token storage and the
session lifecycle (register, login, refresh, logout) on top of them.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
