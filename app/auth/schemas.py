import re
from datetime import datetime
from typing import Annotated, Optional
from uuid import UUID

from pydantic import AfterValidator, BaseModel, EmailStr, Field, field_validator, model_validator

from app.core.enums import UserRole

_PASSWORD_RE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")


def _check_password_strength(value: str) -> str:
    if not _PASSWORD_RE.match(value):
        raise ValueError("Password must contain a lowercase letter, an uppercase letter and a digit")
    return value


StrongPassword = Annotated[str, Field(min_length=8), AfterValidator(_check_password_strength)]


class RegisterRequest(BaseModel):
    email: EmailStr
    password: StrongPassword
    first_name: str = Field(..., min_length=2, max_length=50)
    last_name: str = Field(..., min_length=2, max_length=50)
    role: UserRole
    school_id: Optional[UUID] = None

    @field_validator("first_name", "last_name", mode="before")
    @classmethod
    def strip_names(cls, v):
        return v.strip() if isinstance(v, str) else v

    @model_validator(mode="after")
    def school_admin_needs_school(self) -> "RegisterRequest":
        if self.role == UserRole.SCHOOL_ADMIN and self.school_id is None:
            raise ValueError("school_id is required for school_admin")
        return self


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class UpdateProfileRequest(BaseModel):
    first_name: Optional[str] = Field(None, min_length=2, max_length=50)
    last_name: Optional[str] = Field(None, min_length=2, max_length=50)

    @model_validator(mode="after")
    def at_least_one_field(self) -> "UpdateProfileRequest":
        if self.first_name is None and self.last_name is None:
            raise ValueError("At least one field must be provided for update")
        return self


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: StrongPassword

    @model_validator(mode="after")
    def new_differs(self) -> "ChangePasswordRequest":
        if self.new_password == self.current_password:
            raise ValueError("New password must differ from the current password")
        return self


class UserInfo(BaseModel):
    id: UUID
    email: EmailStr
    first_name: str
    last_name: str
    role: UserRole
    school_id: Optional[UUID] = None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class UserResult(BaseModel):
    user: UserInfo
    message: Optional[str] = None


class AuthResult(BaseModel):
    user: UserInfo
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    message: Optional[str] = None


class AccessTokenResult(BaseModel):
    access_token: str
    token_type: str = "bearer"


class MessageResult(BaseModel):
    message: str


class IdentityClaim(BaseModel):
    """Decoded, verified facts about the caller. Derived from the access token, never persisted.

    school_id is only set for school_admin; a superadmin is authorized for every school.
    """

    user_id: UUID
    email: str
    role: UserRole
    school_id: Optional[UUID] = None
