from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_claim
from app.auth.schemas import (
    ChangePasswordRequest,
    IdentityClaim,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    UpdateProfileRequest,
)
from app.core.dispatcher import dispatch, render_error
from app.core.outcomes import ErrorOutcome
from app.db.session import get_db

from . import service

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


@router.post("/register")
async def register(
    payload: RegisterRequest,
    db: AsyncSession = Depends(get_db),
) -> JSONResponse:
    return await dispatch(service.register_user, db, payload, success_status=status.HTTP_201_CREATED)


@router.post("/login")
async def login(
    payload: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> JSONResponse:
    return await dispatch(service.login_user, db, payload)


@router.post("/login-oauth")
async def login_oauth(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db),
):
    """OAuth2 password flow for the OpenAPI 'Authorize' button: username is the email."""
    payload = LoginRequest(
        email=form_data.username.strip(),
        password=form_data.password,
    )
    result = await service.login_user(db, payload)
    if isinstance(result, ErrorOutcome):
        return render_error(result)
    return {
        "access_token": result.access_token,
        "token_type": "bearer",
    }


@router.post("/refresh")
async def refresh(
    payload: RefreshRequest,
    db: AsyncSession = Depends(get_db),
) -> JSONResponse:
    return await dispatch(service.refresh_access_token, db, payload)


@router.get("/me")
async def me(
    db: AsyncSession = Depends(get_db),
    claim: IdentityClaim = Depends(get_current_claim),
) -> JSONResponse:
    return await dispatch(service.get_me, db, claim)


@router.put("/profile")
async def update_profile(
    payload: UpdateProfileRequest,
    db: AsyncSession = Depends(get_db),
    claim: IdentityClaim = Depends(get_current_claim),
) -> JSONResponse:
    return await dispatch(service.update_profile, db, claim, payload)


@router.put("/change-password")
async def change_password(
    payload: ChangePasswordRequest,
    db: AsyncSession = Depends(get_db),
    claim: IdentityClaim = Depends(get_current_claim),
) -> JSONResponse:
    return await dispatch(service.change_password, db, claim, payload)
