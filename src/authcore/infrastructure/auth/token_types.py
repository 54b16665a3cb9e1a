"""Token claim types.

Access and refresh tokens carry distinct claim sets. Each model pins its
``type`` field to a literal, so a refresh payload can never validate as access
claims and vice versa.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class AccessClaims(BaseModel):
    """Claims embedded in an access token."""

    model_config = ConfigDict(frozen=True)

    type: Literal["access"] = "access"
    sub: str = Field(..., description="User ID")
    email: str = Field(..., description="User's email address")
    roles: tuple[str, ...] = Field(default=(), description="Role tags of the user")
    iat: int = Field(..., description="Unix timestamp when the token was issued")
    exp: int = Field(..., description="Unix timestamp when the token expires")


class RefreshClaims(BaseModel):
    """Claims embedded in a refresh token."""

    model_config = ConfigDict(frozen=True)

    type: Literal["refresh"] = "refresh"
    sub: str = Field(..., description="User ID")
    jti: str = Field(..., description="Random identifier, unique per refresh token")
    iat: int = Field(..., description="Unix timestamp when the token was issued")
    exp: int = Field(..., description="Unix timestamp when the token expires")


TokenClaims = Annotated[Union[AccessClaims, RefreshClaims], Field(discriminator="type")]

token_claims_adapter: TypeAdapter[AccessClaims | RefreshClaims] = TypeAdapter(TokenClaims)


class TokenFailure(str, Enum):
    """Why a token failed verification."""

    EXPIRED = "expired"
    INVALID = "invalid"


class SignedToken(BaseModel):
    """A freshly signed token together with its claims and absolute expiry."""

    model_config = ConfigDict(frozen=True)

    token: str
    claims: AccessClaims | RefreshClaims
    expires_at: datetime
