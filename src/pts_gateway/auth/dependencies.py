"""FastAPI dependency: require_admin.

Usage in any admin router:
    from src.pts_gateway.auth.dependencies import AdminPrincipal, require_admin

    @router.post("/things")
    async def create(admin: AdminPrincipal = Depends(require_admin)):
        ...
"""

from dataclasses import dataclass

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from src.pts_common.errors import AdminRequiredError, InvalidCredentialsError
from src.pts_gateway.auth.jwt_handler import decode_access_token

# Tokens come from the gateway; tokenUrl only feeds Swagger's "Authorize" button
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")

_CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Invalid or expired token",
    headers={"WWW-Authenticate": "Bearer"},
)


@dataclass(frozen=True)
class AdminPrincipal:
    account_id: int


async def require_admin(token: str = Depends(oauth2_scheme)) -> AdminPrincipal:
    """Validate the Bearer token and require the is_admin claim.

    Raises HTTP 401 if the token is missing, invalid, or expired.
    Raises AdminRequiredError (403) if the caller is not an admin.
    """
    try:
        payload = decode_access_token(token)
    except InvalidCredentialsError:
        raise _CREDENTIALS_EXCEPTION from None

    try:
        account_id = int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise _CREDENTIALS_EXCEPTION from None

    if not payload.get("is_admin"):
        raise AdminRequiredError()
    return AdminPrincipal(account_id=account_id)
