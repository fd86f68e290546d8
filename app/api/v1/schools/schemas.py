from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from app.core.outcomes import Pagination
from app.core.schemas import Address


class SchoolContactInfo(BaseModel):
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=20)
    website: Optional[str] = Field(None, max_length=200)


class SchoolContactInfoUpdate(BaseModel):
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=20)
    website: Optional[str] = Field(None, max_length=200)


def _check_established_year(value: Optional[int]) -> Optional[int]:
    if value is not None and value > date.today().year:
        raise ValueError("Establishment year cannot be in the future")
    return value


class SchoolCreate(BaseModel):
    name: str = Field(..., min_length=3, max_length=100)
    address: Optional[Address] = None
    contact_info: SchoolContactInfo
    established_year: Optional[int] = Field(None, ge=1800)
    principal_name: Optional[str] = Field(None, max_length=100)
    total_capacity: Optional[int] = Field(None, ge=1)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("established_year")
    @classmethod
    def year_not_in_future(cls, v):
        return _check_established_year(v)


class SchoolUpdate(BaseModel):
    """Partial update. Fields present replace the stored value as a whole (sub-objects too)."""

    name: Optional[str] = Field(None, min_length=3, max_length=100)
    address: Optional[Address] = None
    contact_info: Optional[SchoolContactInfoUpdate] = None
    established_year: Optional[int] = Field(None, ge=1800)
    principal_name: Optional[str] = Field(None, max_length=100)
    total_capacity: Optional[int] = Field(None, ge=1)
    is_active: Optional[bool] = None

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("established_year")
    @classmethod
    def year_not_in_future(cls, v):
        return _check_established_year(v)

    @model_validator(mode="after")
    def at_least_one_field(self) -> "SchoolUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided for update")
        return self


class SchoolResponse(BaseModel):
    id: UUID
    name: str
    address: Optional[dict] = None
    contact_info: dict
    established_year: Optional[int] = None
    principal_name: Optional[str] = None
    total_capacity: Optional[int] = None
    is_active: bool
    created_by: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class SchoolResult(BaseModel):
    school: SchoolResponse
    message: Optional[str] = None


class SchoolListResult(BaseModel):
    schools: List[SchoolResponse]
    pagination: Pagination


class SchoolStats(BaseModel):
    classrooms: int
    students: int
    capacity: Optional[int] = None
    # Percentage of total_capacity in use, two decimals; 0 when capacity is unset or 0
    utilization_rate: float


class SchoolStatsResult(BaseModel):
    school: SchoolResponse
    stats: SchoolStats


class MessageResult(BaseModel):
    message: str
