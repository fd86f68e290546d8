import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("ENVIRONMENT", "test")

import uuid
from datetime import date
from typing import AsyncGenerator, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

import app.auth.models  # noqa: F401
from app.auth.schemas import IdentityClaim
from app.auth.security import claim_subject, create_access_token
from app.core.enums import UserRole
from app.core.models import Classroom, School, Student
from app.db.session import Base, get_db
from app.main import app


@pytest.fixture()
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    """Fresh SQLite file per test; every request and the test itself get their own session."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        echo=False,
        future=True,
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    yield factory
    app.dependency_overrides.pop(get_db, None)
    await engine.dispose()


@pytest.fixture()
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture()
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# ---------------------------------------------------------------------------
# Identity helpers
# ---------------------------------------------------------------------------


def make_claim(role: UserRole = UserRole.SUPERADMIN, school_id: Optional[uuid.UUID] = None) -> IdentityClaim:
    return IdentityClaim(
        user_id=uuid.uuid4(),
        email=f"{role.value}-{uuid.uuid4().hex[:8]}@example.com",
        role=role,
        school_id=school_id,
    )


def auth_headers(claim: IdentityClaim) -> dict:
    token = create_access_token(
        subject=claim_subject(claim.user_id, claim.email, claim.role.value, claim.school_id)
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def superadmin() -> IdentityClaim:
    return make_claim(UserRole.SUPERADMIN)


@pytest.fixture()
def superadmin_headers(superadmin) -> dict:
    return auth_headers(superadmin)


# ---------------------------------------------------------------------------
# Factories (write straight to the database, bypassing the enrollment engine)
# ---------------------------------------------------------------------------


async def create_school(db: AsyncSession, name: Optional[str] = None, **overrides) -> School:
    school = School(
        name=name or f"School {uuid.uuid4().hex[:8]}",
        contact_info={"email": "office@example.com"},
        total_capacity=overrides.pop("total_capacity", 500),
        is_active=overrides.pop("is_active", True),
        **overrides,
    )
    db.add(school)
    await db.commit()
    return school


async def create_classroom(
    db: AsyncSession,
    school: School,
    capacity: int = 30,
    current_enrollment: int = 0,
    name: str = "Blue Room",
    grade: int = 3,
    section: Optional[str] = "A",
    **overrides,
) -> Classroom:
    classroom = Classroom(
        school_id=school.id,
        name=name,
        grade=grade,
        section=section,
        capacity=capacity,
        current_enrollment=current_enrollment,
        subjects=[],
        is_active=overrides.pop("is_active", True),
        **overrides,
    )
    db.add(classroom)
    await db.commit()
    return classroom


async def create_student(
    db: AsyncSession,
    classroom: Classroom,
    status: str = "active",
    first_name: str = "Ada",
    last_name: str = "Lovelace",
) -> Student:
    """Insert a student row directly. Does not touch the classroom counter."""
    student = Student(
        school_id=classroom.school_id,
        classroom_id=classroom.id,
        student_code=f"STU-TS-{uuid.uuid4().hex[:6].upper()}",
        first_name=first_name,
        last_name=last_name,
        date_of_birth=date(2015, 5, 1),
        guardian={"name": "Grace Hopper", "phone": "555-0100"},
        status=status,
    )
    db.add(student)
    await db.commit()
    return student


def student_payload(school_id, classroom_id, **overrides) -> dict:
    payload = {
        "school_id": str(school_id),
        "classroom_id": str(classroom_id),
        "first_name": "Alan",
        "last_name": "Turing",
        "date_of_birth": "2014-06-23",
        "gender": "male",
        "guardian": {"name": "Ethel Turing", "phone": "555-0199", "relationship": "mother"},
    }
    payload.update(overrides)
    return payload


async def reload(db: AsyncSession, model, ident):
    """Read a row as currently stored, ignoring anything cached in the session."""
    return await db.get(model, ident, populate_existing=True)
