from datetime import timedelta

from sqlalchemy import select, update

from school_erp.core.database import AsyncSessionLocal
from school_erp.models import UserSession
from school_erp.utils.dates import utcnow
from tests.conftest import ADMIN_PASSWORD, SCHOOL_CODE, login


async def test_school_signup_generates_code(client):
    response = await client.post("/api/schools", json={
        "name": "Riverside Public School",
        "email": "admin@riverside.example.com",
        "admin_password": "secret123",
    })
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["school_code"] == "RPS001"

    second = await client.post("/api/schools", json={
        "name": "Royal Pine School",
        "email": "admin@royalpine.example.com",
        "admin_password": "secret123",
    })
    assert second.json()["data"]["school_code"] == "RPS002"


async def test_signup_rejects_duplicate_email(client, school):
    response = await client.post("/api/schools", json={
        "name": "Another School",
        "email": school.email,
        "admin_password": "secret123",
    })
    assert response.status_code == 400
    assert response.json()["error"]


async def test_school_admin_login_and_session(client, school):
    response = await client.post(
        "/api/auth/school/login", json={"school_code": SCHOOL_CODE.lower(), "password": ADMIN_PASSWORD}
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["role"] == "school"
    assert data["redirect"] == f"/dashboard/{SCHOOL_CODE}"
    assert "auth_token" in response.cookies
    assert "session_id" in response.cookies

    headers = {"Authorization": f"Session {response.cookies['session_id']}"}
    client.cookies.clear()
    session = await client.get("/api/auth/session", headers=headers)
    assert session.status_code == 200
    assert session.json()["data"]["school_code"] == SCHOOL_CODE


async def test_wrong_password_is_rejected_and_audited(client, school, admin_headers):
    response = await client.post("/api/auth/school/login", json={"school_code": SCHOOL_CODE, "password": "nope"})
    assert response.status_code == 401

    audit = await client.get("/api/admin/login-audit", params={"status": "failed"}, headers=admin_headers)
    assert audit.status_code == 200
    assert len(audit.json()["data"]) == 1


async def test_login_is_rate_limited(client, school):
    statuses = []
    for _ in range(11):
        response = await client.post("/api/auth/school/login", json={"school_code": SCHOOL_CODE, "password": "nope"})
        statuses.append(response.status_code)
    assert statuses[:10] == [401] * 10
    assert statuses[10] == 429
    assert "retry_after" in response.json()["details"]


async def test_staff_login(client, teacher):
    headers = await login(
        client, "/api/auth/staff/login", {"school_code": SCHOOL_CODE, "staff_id": "t001", "password": "staff-pass"}
    )
    session = await client.get("/api/auth/session", headers=headers)
    assert session.json()["data"]["role"] == "teacher"
    assert session.json()["data"]["user"]["staff_id"] == "T001"


async def test_teacher_cannot_use_accountant_login(client, teacher):
    response = await client.post(
        "/api/auth/accountant/login", json={"school_code": SCHOOL_CODE, "staff_id": "T001", "password": "staff-pass"}
    )
    assert response.status_code == 403


async def test_logout_ends_the_session(client, admin_headers):
    response = await client.post("/api/auth/logout", headers=admin_headers)
    assert response.status_code == 200
    assert (await client.get("/api/auth/session", headers=admin_headers)).status_code == 401


async def test_admin_cannot_reach_another_school(client, admin_headers):
    response = await client.get("/api/students", params={"school_code": "OTHER1"}, headers=admin_headers)
    assert response.status_code == 403


async def _expiry(token):
    async with AsyncSessionLocal() as db:
        return (await db.execute(
            select(UserSession.expires_at).where(UserSession.session_token == token)
        )).scalar_one_or_none()


async def _set_expiry(token, expires_at):
    async with AsyncSessionLocal() as db:
        await db.execute(update(UserSession).where(UserSession.session_token == token).values(expires_at=expires_at))
        await db.commit()


async def test_session_expiry_slides_on_use_and_lapses_when_idle(client, admin_headers):
    token = admin_headers["Authorization"].split(" ", 1)[1]

    await _set_expiry(token, utcnow() + timedelta(seconds=30))
    assert (await client.get("/api/auth/session", headers=admin_headers)).status_code == 200
    assert await _expiry(token) > utcnow() + timedelta(minutes=10)

    await _set_expiry(token, utcnow() - timedelta(seconds=1))
    response = await client.get("/api/auth/session", headers=admin_headers)
    assert response.status_code == 401
    assert await _expiry(token) is None


async def test_actions_are_written_to_the_audit_log(client, admin_headers):
    created = await client.post("/api/classes", json={"class_name": "8", "section": "C"}, headers=admin_headers)
    assert created.status_code == 201, created.text

    logs = await client.get("/api/audit-logs", params={"entity_type": "class"}, headers=admin_headers)
    assert logs.status_code == 200
    entries = logs.json()["data"]
    assert len(entries) == 1
    assert entries[0]["action"] == "create"
    assert entries[0]["entity_id"] == created.json()["data"]["id"]
    assert entries[0]["performed_by"]


async def test_reported_login_is_recorded_once_per_window(client, admin_headers):
    event = {"school_code": "ghs001", "user_id": "T009", "name": "Dev Rao", "role": "teacher", "status": "success"}

    first = await client.post("/api/auth/log-login", json=event)
    assert first.status_code == 200
    assert first.json()["data"] == {"recorded": True}

    repeat = await client.post("/api/auth/log-login", json=event)
    assert repeat.json()["data"] == {"recorded": False}

    failed = await client.post("/api/auth/log-login", json={**event, "status": "failed"})
    assert failed.json()["data"] == {"recorded": True}

    logs = await client.get("/api/admin/login-audit", params={"role": "teacher"}, headers=admin_headers)
    assert sorted(entry["status"] for entry in logs.json()["data"]) == ["failed", "success"]
