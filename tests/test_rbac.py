import uuid

from app.auth.rbac import can_access, is_school_admin, is_superadmin
from app.auth.schemas import IdentityClaim
from app.core.enums import UserRole

from conftest import make_claim


def test_superadmin_can_access_any_school() -> None:
    claim = make_claim(UserRole.SUPERADMIN)
    assert is_superadmin(claim)
    assert can_access(claim, uuid.uuid4())
    assert can_access(claim, None)


def test_school_admin_only_accesses_own_school() -> None:
    own = uuid.uuid4()
    claim = make_claim(UserRole.SCHOOL_ADMIN, school_id=own)
    assert is_school_admin(claim)
    assert can_access(claim, own)
    assert not can_access(claim, uuid.uuid4())


def test_school_ids_compared_as_strings() -> None:
    own = uuid.uuid4()
    claim = make_claim(UserRole.SCHOOL_ADMIN, school_id=own)
    assert can_access(claim, str(own))
    assert can_access(claim, str(own).upper())


def test_school_admin_without_school_is_denied() -> None:
    claim = IdentityClaim(
        user_id=uuid.uuid4(),
        email="orphan@example.com",
        role=UserRole.SCHOOL_ADMIN,
        school_id=None,
    )
    assert not can_access(claim, uuid.uuid4())
    assert not can_access(claim, None)


def test_missing_claim_is_denied() -> None:
    assert not is_superadmin(None)
    assert not can_access(None, uuid.uuid4())
