from datetime import datetime, timedelta, timezone
import secrets
from typing import Dict, Optional, Tuple
from uuid import UUID

import bcrypt
from fastapi import status
from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import ValidationError

from app.auth.schemas import IdentityClaim
from app.core.config import settings
from app.core.enums import ErrorCode
from app.core.exceptions import ServiceError


def hash_password(plain_password: str) -> str:
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(plain_password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # In case the stored hash is invalid/corrupted
        return False


def create_access_token(
    *, subject: Dict, expires_minutes: Optional[int] = None
) -> str:
    if expires_minutes is None:
        expires_minutes = settings.access_token_expire_minutes

    to_encode = subject.copy()
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(
        to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm
    )
    return encoded_jwt


def claim_subject(user_id: UUID, email: str, role: str, school_id: Optional[UUID]) -> Dict:
    """Token payload for a user: sub, email, role and (school admins only) school_id."""
    subject = {"sub": str(user_id), "email": email, "role": role}
    if school_id is not None:
        subject["school_id"] = str(school_id)
    return subject


def create_refresh_token(*, expires_days: Optional[int] = None) -> Tuple[str, datetime]:
    if expires_days is None:
        expires_days = settings.refresh_token_expire_days
    expire = datetime.now(timezone.utc) + timedelta(days=expires_days)
    token = secrets.token_urlsafe(48)
    return token, expire


def decode_access_token(token: str) -> IdentityClaim:
    """Verify an access token and return its identity claim.

    Expired and otherwise invalid tokens are reported with distinct codes.
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except ExpiredSignatureError:
        raise ServiceError("Token has expired", status.HTTP_401_UNAUTHORIZED, ErrorCode.TOKEN_EXPIRED)
    except JWTError:
        raise ServiceError("Invalid token", status.HTTP_401_UNAUTHORIZED, ErrorCode.INVALID_TOKEN)

    try:
        return IdentityClaim(
            user_id=payload.get("sub"),
            email=payload.get("email"),
            role=payload.get("role"),
            school_id=payload.get("school_id"),
        )
    except ValidationError:
        raise ServiceError("Invalid token", status.HTTP_401_UNAUTHORIZED, ErrorCode.INVALID_TOKEN)
