from typing import Optional

from fastapi import Depends, status
from fastapi.security import OAuth2PasswordBearer

from app.auth.schemas import IdentityClaim
from app.auth.security import decode_access_token
from app.core.enums import ErrorCode
from app.core.exceptions import ServiceError


# auto_error=False so a missing header is reported as NO_TOKEN in the common error shape
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login-oauth", auto_error=False)


async def get_current_claim(
    token: Optional[str] = Depends(oauth2_scheme),
) -> IdentityClaim:
    """Resolve the caller's identity claim from the bearer token."""
    if not token:
        raise ServiceError("Access token required", status.HTTP_401_UNAUTHORIZED, ErrorCode.NO_TOKEN)
    return decode_access_token(token)
