from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_claim
from app.auth.schemas import IdentityClaim
from app.core.config import settings
from app.core.dispatcher import dispatch
from app.db.session import get_db

from .schemas import SchoolCreate, SchoolUpdate
from . import service

router = APIRouter(prefix="/api/v1/schools", tags=["schools"])


@router.get("")
async def list_schools(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    search: Optional[str] = Query(None, max_length=100, description="Case-insensitive match on name"),
    db: AsyncSession = Depends(get_db),
    claim: IdentityClaim = Depends(get_current_claim),
) -> JSONResponse:
    return await dispatch(service.list_schools, db, claim, page=page, page_size=page_size, search=search)


@router.post("")
async def create_school(
    payload: SchoolCreate,
    db: AsyncSession = Depends(get_db),
    claim: IdentityClaim = Depends(get_current_claim),
) -> JSONResponse:
    return await dispatch(service.create_school, db, claim, payload, success_status=status.HTTP_201_CREATED)


@router.get("/{school_id}")
async def get_school(
    school_id: UUID,
    db: AsyncSession = Depends(get_db),
    claim: IdentityClaim = Depends(get_current_claim),
) -> JSONResponse:
    return await dispatch(service.get_school, db, claim, school_id)


@router.put("/{school_id}")
async def update_school(
    school_id: UUID,
    payload: SchoolUpdate,
    db: AsyncSession = Depends(get_db),
    claim: IdentityClaim = Depends(get_current_claim),
) -> JSONResponse:
    return await dispatch(service.update_school, db, claim, school_id, payload)


@router.delete("/{school_id}")
async def delete_school(
    school_id: UUID,
    db: AsyncSession = Depends(get_db),
    claim: IdentityClaim = Depends(get_current_claim),
) -> JSONResponse:
    return await dispatch(service.delete_school, db, claim, school_id)


@router.get("/{school_id}/stats")
async def get_school_stats(
    school_id: UUID,
    db: AsyncSession = Depends(get_db),
    claim: IdentityClaim = Depends(get_current_claim),
) -> JSONResponse:
    return await dispatch(service.get_school_stats, db, claim, school_id)
