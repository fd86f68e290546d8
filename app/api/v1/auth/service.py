from datetime import datetime, timezone
from typing import Optional, Union

from fastapi import status
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import RefreshToken, User
from app.auth.schemas import (
    AccessTokenResult,
    AuthResult,
    ChangePasswordRequest,
    IdentityClaim,
    LoginRequest,
    MessageResult,
    RegisterRequest,
    RefreshRequest,
    UpdateProfileRequest,
    UserInfo,
    UserResult,
)
from app.auth.security import (
    claim_subject,
    create_access_token,
    create_refresh_token,
    hash_password,
    verify_password,
)
from app.core.enums import ErrorCode, UserRole
from app.core.exceptions import ServiceError
from app.core.models import School
from app.core.outcomes import ErrorOutcome


def _access_token_for(user: User) -> str:
    return create_access_token(
        subject=claim_subject(user.id, user.email, user.role, user.school_id)
    )


async def _issue_tokens(db: AsyncSession, user: User) -> tuple:
    """Access token plus a stored refresh token. Caller commits.

    The user's expired refresh tokens are pruned on the way.
    """
    await db.execute(
        delete(RefreshToken)
        .where(
            RefreshToken.user_id == user.id,
            RefreshToken.expires_at <= datetime.now(timezone.utc),
        )
        .execution_options(synchronize_session=False)
    )
    refresh_token_str, refresh_expires_at = create_refresh_token()
    db.add(
        RefreshToken(
            user_id=user.id,
            token=refresh_token_str,
            expires_at=refresh_expires_at,
        )
    )
    return _access_token_for(user), refresh_token_str


async def _find_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).where(func.lower(User.email) == email.lower()))
    return result.scalar_one_or_none()


async def register_user(db: AsyncSession, payload: RegisterRequest) -> Union[AuthResult, ErrorOutcome]:
    email = payload.email.lower()
    if await _find_by_email(db, email):
        return ErrorOutcome(error="User with this email already exists", code=ErrorCode.USER_EXISTS)

    school_id = None
    if payload.role == UserRole.SCHOOL_ADMIN:
        school = await db.get(School, payload.school_id)
        if not school or not school.is_active:
            return ErrorOutcome(error="School not found", code=ErrorCode.SCHOOL_NOT_FOUND)
        school_id = school.id

    user = User(
        email=email,
        password_hash=hash_password(payload.password),
        first_name=payload.first_name,
        last_name=payload.last_name,
        role=payload.role.value,
        school_id=school_id,
        is_active=True,
    )
    db.add(user)
    try:
        await db.flush()
        access_token, refresh_token = await _issue_tokens(db, user)
        await db.commit()
    except IntegrityError:
        # Concurrent registration with the same email
        await db.rollback()
        return ErrorOutcome(error="User with this email already exists", code=ErrorCode.USER_EXISTS)

    return AuthResult(
        user=UserInfo.model_validate(user),
        access_token=access_token,
        refresh_token=refresh_token,
        message="User registered successfully",
    )


async def login_user(db: AsyncSession, payload: LoginRequest) -> Union[AuthResult, ErrorOutcome]:
    user = await _find_by_email(db, payload.email)
    if not user:
        return ErrorOutcome(error="Invalid email or password", code=ErrorCode.INVALID_CREDENTIALS)
    if not user.is_active:
        return ErrorOutcome(error="Account has been deactivated", code=ErrorCode.ACCOUNT_INACTIVE)
    if not verify_password(payload.password, user.password_hash):
        return ErrorOutcome(error="Invalid email or password", code=ErrorCode.INVALID_CREDENTIALS)

    access_token, refresh_token = await _issue_tokens(db, user)
    try:
        await db.commit()
    except Exception as e:
        await db.rollback()
        raise ServiceError(
            "Failed to persist authentication state",
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        ) from e

    return AuthResult(
        user=UserInfo.model_validate(user),
        access_token=access_token,
        refresh_token=refresh_token,
        message="Login successful",
    )


async def refresh_access_token(
    db: AsyncSession, payload: RefreshRequest
) -> Union[AccessTokenResult, ErrorOutcome]:
    result = await db.execute(
        select(RefreshToken).where(RefreshToken.token == payload.refresh_token)
    )
    stored: Optional[RefreshToken] = result.scalar_one_or_none()
    if not stored:
        return ErrorOutcome(error="Invalid refresh token", code=ErrorCode.INVALID_TOKEN)

    expires_at = stored.expires_at
    if expires_at.tzinfo is None:
        # sqlite drops the offset; stored values are UTC
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    if expires_at <= datetime.now(timezone.utc):
        return ErrorOutcome(error="Refresh token has expired", code=ErrorCode.INVALID_TOKEN)

    user = await db.get(User, stored.user_id)
    if not user or not user.is_active:
        return ErrorOutcome(error="Invalid refresh token", code=ErrorCode.INVALID_TOKEN)
    return AccessTokenResult(access_token=_access_token_for(user))


async def _current_user(db: AsyncSession, claim: IdentityClaim) -> Optional[User]:
    return await db.get(User, claim.user_id)


async def get_me(db: AsyncSession, claim: IdentityClaim) -> Union[UserResult, ErrorOutcome]:
    user = await _current_user(db, claim)
    if not user:
        return ErrorOutcome(error="User not found", code=ErrorCode.USER_NOT_FOUND)
    return UserResult(user=UserInfo.model_validate(user))


async def update_profile(
    db: AsyncSession, claim: IdentityClaim, payload: UpdateProfileRequest
) -> Union[UserResult, ErrorOutcome]:
    user = await _current_user(db, claim)
    if not user:
        return ErrorOutcome(error="User not found", code=ErrorCode.USER_NOT_FOUND)

    if payload.first_name is not None:
        user.first_name = payload.first_name.strip()
    if payload.last_name is not None:
        user.last_name = payload.last_name.strip()
    await db.commit()
    await db.refresh(user)
    return UserResult(user=UserInfo.model_validate(user), message="Profile updated successfully")


async def change_password(
    db: AsyncSession, claim: IdentityClaim, payload: ChangePasswordRequest
) -> Union[MessageResult, ErrorOutcome]:
    user = await _current_user(db, claim)
    if not user:
        return ErrorOutcome(error="User not found", code=ErrorCode.USER_NOT_FOUND)
    if not verify_password(payload.current_password, user.password_hash):
        return ErrorOutcome(error="Current password is incorrect", code=ErrorCode.INVALID_PASSWORD)

    user.password_hash = hash_password(payload.new_password)
    # revoke every refresh session
    await db.execute(
        delete(RefreshToken)
        .where(RefreshToken.user_id == user.id)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return MessageResult(message="Password changed successfully")
