import uuid

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import UserRole
from app.core.models import Classroom, School

from conftest import (
    auth_headers,
    create_classroom,
    create_school,
    create_student,
    make_claim,
    reload,
)


def _school_body(name: str = "Springfield Elementary", **overrides) -> dict:
    body = {
        "name": name,
        "address": {"street": "19 Plympton St", "city": "Springfield", "country": "US"},
        "contact_info": {"email": "office@springfield.example.com", "phone": "555-0123"},
        "established_year": 1989,
        "principal_name": "Seymour Skinner",
        "total_capacity": 400,
    }
    body.update(overrides)
    return body


@pytest.mark.asyncio
async def test_create_school(client: AsyncClient, superadmin, superadmin_headers) -> None:
    response = await client.post("/api/v1/schools", json=_school_body(), headers=superadmin_headers)

    assert response.status_code == 201
    data = response.json()
    assert data["success"] is True
    assert data["message"] == "School created successfully"
    assert data["school"]["name"] == "Springfield Elementary"
    assert data["school"]["address"]["city"] == "Springfield"
    assert data["school"]["is_active"] is True
    assert data["school"]["created_by"] == str(superadmin.user_id)


@pytest.mark.asyncio
async def test_duplicate_school_name_is_conflict(client: AsyncClient, superadmin_headers) -> None:
    first = await client.post("/api/v1/schools", json=_school_body(), headers=superadmin_headers)
    assert first.status_code == 201

    response = await client.post("/api/v1/schools", json=_school_body(), headers=superadmin_headers)

    assert response.status_code == 409
    body = response.json()
    assert body["code"] == "DUPLICATE_ERROR"
    assert body["error"] == "Duplicate name"


@pytest.mark.asyncio
async def test_school_admin_cannot_create_school(client: AsyncClient) -> None:
    headers = auth_headers(make_claim(UserRole.SCHOOL_ADMIN, school_id=uuid.uuid4()))

    response = await client.post("/api/v1/schools", json=_school_body(), headers=headers)

    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN"


@pytest.mark.asyncio
async def test_create_school_validation(client: AsyncClient, superadmin_headers) -> None:
    response = await client.post(
        "/api/v1/schools",
        json=_school_body(name="ab", established_year=3000),
        headers=superadmin_headers,
    )

    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "VALIDATION_ERROR"
    fields = {d["field"] for d in body["details"]}
    assert "name" in fields
    assert "established_year" in fields


@pytest.mark.asyncio
async def test_list_schools_search_and_pagination(
    client: AsyncClient, db_session: AsyncSession, superadmin_headers
) -> None:
    await create_school(db_session, name="North Ridge High")
    await create_school(db_session, name="South Ridge High")
    await create_school(db_session, name="Lakeside Primary")
    await create_school(db_session, name="Closed Ridge Academy", is_active=False)

    response = await client.get(
        "/api/v1/schools",
        params={"search": "RIDGE", "page": 1, "page_size": 1},
        headers=superadmin_headers,
    )

    assert response.status_code == 200
    data = response.json()
    assert len(data["schools"]) == 1
    assert data["pagination"] == {"page": 1, "page_size": 1, "total": 2, "total_pages": 2}


@pytest.mark.asyncio
async def test_search_treats_wildcards_literally(
    client: AsyncClient, db_session: AsyncSession, superadmin_headers
) -> None:
    await create_school(db_session, name="North Ridge High")
    await create_school(db_session, name="Lakeside Primary")
    await create_school(db_session, name="Top 10% Academy")
    await create_school(db_session, name="Saint_Mary School")

    percent = await client.get("/api/v1/schools", params={"search": "%"}, headers=superadmin_headers)
    underscore = await client.get("/api/v1/schools", params={"search": "_"}, headers=superadmin_headers)
    plain = await client.get("/api/v1/schools", params={"search": "e_h"}, headers=superadmin_headers)

    assert [s["name"] for s in percent.json()["schools"]] == ["Top 10% Academy"]
    assert [s["name"] for s in underscore.json()["schools"]] == ["Saint_Mary School"]
    assert plain.json()["schools"] == []


@pytest.mark.asyncio
async def test_school_admin_cannot_list_schools(client: AsyncClient) -> None:
    headers = auth_headers(make_claim(UserRole.SCHOOL_ADMIN, school_id=uuid.uuid4()))

    response = await client.get("/api/v1/schools", headers=headers)

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_school_admin_reads_only_own_school(client: AsyncClient, db_session: AsyncSession) -> None:
    own = await create_school(db_session)
    other = await create_school(db_session)
    headers = auth_headers(make_claim(UserRole.SCHOOL_ADMIN, school_id=own.id))

    ok = await client.get(f"/api/v1/schools/{own.id}", headers=headers)
    denied = await client.get(f"/api/v1/schools/{other.id}", headers=headers)

    assert ok.status_code == 200
    assert ok.json()["school"]["id"] == str(own.id)
    assert denied.status_code == 403
    assert denied.json() == {"error": "Access denied to this school", "code": "FORBIDDEN"}


@pytest.mark.asyncio
async def test_get_unknown_school_is_not_found(client: AsyncClient, superadmin_headers) -> None:
    response = await client.get(f"/api/v1/schools/{uuid.uuid4()}", headers=superadmin_headers)

    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_malformed_school_id_is_invalid_id(client: AsyncClient, superadmin_headers) -> None:
    response = await client.get("/api/v1/schools/not-a-uuid", headers=superadmin_headers)

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_ID"


@pytest.mark.asyncio
async def test_update_school_replaces_sub_objects(
    client: AsyncClient, db_session: AsyncSession, superadmin_headers
) -> None:
    school = await create_school(db_session)

    response = await client.put(
        f"/api/v1/schools/{school.id}",
        json={"contact_info": {"phone": "555-9999"}, "principal_name": "Edna Krabappel"},
        headers=superadmin_headers,
    )

    assert response.status_code == 200
    data = response.json()["school"]
    assert data["contact_info"] == {"phone": "555-9999"}
    assert data["principal_name"] == "Edna Krabappel"


@pytest.mark.asyncio
async def test_update_school_requires_a_field(
    client: AsyncClient, db_session: AsyncSession, superadmin_headers
) -> None:
    school = await create_school(db_session)

    response = await client.put(f"/api/v1/schools/{school.id}", json={}, headers=superadmin_headers)

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_delete_school_is_soft(client: AsyncClient, db_session: AsyncSession, superadmin_headers) -> None:
    school = await create_school(db_session)
    classroom = await create_classroom(db_session, school)

    response = await client.delete(f"/api/v1/schools/{school.id}", headers=superadmin_headers)

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "School deleted successfully"}
    assert (await reload(db_session, School, school.id)).is_active is False
    # no cascade to classrooms
    assert (await reload(db_session, Classroom, classroom.id)).is_active is True


@pytest.mark.asyncio
async def test_school_stats(client: AsyncClient, db_session: AsyncSession) -> None:
    school = await create_school(db_session, total_capacity=8)
    classroom = await create_classroom(db_session, school, current_enrollment=3)
    await create_classroom(db_session, school, name="Closed Room", is_active=False)
    for _ in range(3):
        await create_student(db_session, classroom)
    await create_student(db_session, classroom, status="withdrawn")
    headers = auth_headers(make_claim(UserRole.SCHOOL_ADMIN, school_id=school.id))

    response = await client.get(f"/api/v1/schools/{school.id}/stats", headers=headers)

    assert response.status_code == 200
    stats = response.json()["stats"]
    assert stats == {"classrooms": 1, "students": 3, "capacity": 8, "utilization_rate": 37.5}


@pytest.mark.asyncio
async def test_school_stats_without_capacity(
    client: AsyncClient, db_session: AsyncSession, superadmin_headers
) -> None:
    school = await create_school(db_session, total_capacity=None)

    response = await client.get(f"/api/v1/schools/{school.id}/stats", headers=superadmin_headers)

    assert response.json()["stats"]["utilization_rate"] == 0
