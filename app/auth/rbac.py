"""
Access resolver: the single authorization primitive for school-scoped data.

Pure functions of the identity claim, no shared state. Services call can_access
before touching data and return a FORBIDDEN outcome when it fails.
"""
from typing import Optional, Union
from uuid import UUID

from app.auth.schemas import IdentityClaim
from app.core.enums import UserRole


def is_superadmin(claim: Optional[IdentityClaim]) -> bool:
    return claim is not None and claim.role == UserRole.SUPERADMIN


def is_school_admin(claim: Optional[IdentityClaim]) -> bool:
    return claim is not None and claim.role == UserRole.SCHOOL_ADMIN


def can_access(claim: Optional[IdentityClaim], school_id: Union[UUID, str, None]) -> bool:
    """True when the caller may act on the given school's data.

    Superadmins may access every school. School admins only their own, compared as
    strings; a school admin claim without a school id is denied.
    """
    if is_superadmin(claim):
        return True
    if not is_school_admin(claim):
        return False
    if claim.school_id is None or school_id is None:
        return False
    return str(claim.school_id).lower() == str(school_id).lower()
