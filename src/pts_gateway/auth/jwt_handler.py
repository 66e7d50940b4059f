"""JWT verification for tokens issued by the external auth gateway.

This service never issues tokens. HS256 with the secret shared with the
gateway (JWT_SECRET); only access tokens are accepted.
"""

from typing import Any

from jose import JWTError, jwt

from config.settings import settings
from src.pts_common.errors import InvalidCredentialsError

_ALGORITHM = settings.JWT_ALGORITHM  # "HS256"


def decode_access_token(token: str) -> dict[str, Any]:
    """Decode and validate a gateway access token.

    Returns:
        Decoded payload with at minimum {"sub": ..., "type": "access"}.

    Raises:
        InvalidCredentialsError: bad signature, expired, or not an access token.
    """
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[_ALGORITHM],  # Explicit list prevents algorithm confusion
        )
    except JWTError:
        raise InvalidCredentialsError() from None

    if payload.get("type") != "access" or not payload.get("sub"):
        raise InvalidCredentialsError()
    return payload
