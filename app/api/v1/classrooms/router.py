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

from .schemas import ClassroomCreate, ClassroomUpdate
from . import service

router = APIRouter(prefix="/api/v1/classrooms", tags=["classrooms"])


@router.get("")
async def list_classrooms(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    school_id: Optional[UUID] = Query(None, description="Superadmin filter; school admins always see their own school"),
    db: AsyncSession = Depends(get_db),
    claim: IdentityClaim = Depends(get_current_claim),
) -> JSONResponse:
    return await dispatch(service.list_classrooms, db, claim, page=page, page_size=page_size, school_id=school_id)


@router.post("")
async def create_classroom(
    payload: ClassroomCreate,
    db: AsyncSession = Depends(get_db),
    claim: IdentityClaim = Depends(get_current_claim),
) -> JSONResponse:
    return await dispatch(service.create_classroom, db, claim, payload, success_status=status.HTTP_201_CREATED)


@router.get("/{classroom_id}")
async def get_classroom(
    classroom_id: UUID,
    db: AsyncSession = Depends(get_db),
    claim: IdentityClaim = Depends(get_current_claim),
) -> JSONResponse:
    return await dispatch(service.get_classroom, db, claim, classroom_id)


@router.put("/{classroom_id}")
async def update_classroom(
    classroom_id: UUID,
    payload: ClassroomUpdate,
    db: AsyncSession = Depends(get_db),
    claim: IdentityClaim = Depends(get_current_claim),
) -> JSONResponse:
    return await dispatch(service.update_classroom, db, claim, classroom_id, payload)


@router.delete("/{classroom_id}")
async def delete_classroom(
    classroom_id: UUID,
    db: AsyncSession = Depends(get_db),
    claim: IdentityClaim = Depends(get_current_claim),
) -> JSONResponse:
    return await dispatch(service.delete_classroom, db, claim, classroom_id)


@router.get("/{classroom_id}/students")
async def list_classroom_students(
    classroom_id: UUID,
    db: AsyncSession = Depends(get_db),
    claim: IdentityClaim = Depends(get_current_claim),
) -> JSONResponse:
    return await dispatch(service.list_classroom_students, db, claim, classroom_id)


@router.post("/{classroom_id}/reconcile")
async def reconcile_enrollment(
    classroom_id: UUID,
    db: AsyncSession = Depends(get_db),
    claim: IdentityClaim = Depends(get_current_claim),
) -> JSONResponse:
    """Reset the enrollment counter to the live number of active students."""
    return await dispatch(service.reconcile_enrollment, db, claim, classroom_id)
