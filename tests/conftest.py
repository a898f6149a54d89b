import os
import tempfile

_workdir = tempfile.mkdtemp(prefix="school-erp-tests-")
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["COOKIE_SECURE"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["LOG_DIR"] = os.path.join(_workdir, "logs")
os.environ["UPLOAD_FOLDER"] = os.path.join(_workdir, "uploads")
os.environ.pop("REDIS_URL", None)

import httpx
import pytest

import school_erp.models  # noqa: F401
from school_erp import create_app
from school_erp.core.database import AsyncSessionLocal, engine, get_db_context, reset_db
from school_erp.core.rate_limiter import rate_limiter
from school_erp.core.security import get_password_hash
from school_erp.models import School, Staff, Student
from school_erp.services.rbac_catalog import seed_permission_catalogue
from school_erp.utils.cookie_utils import CookieConfig
from school_erp.utils.dates import current_academic_year

SCHOOL_CODE = "GHS001"
ADMIN_PASSWORD = "admin-pass"
STAFF_PASSWORD = "staff-pass"


@pytest.fixture
async def database():
    await reset_db()
    async with get_db_context() as db:
        await seed_permission_catalogue(db)
    rate_limiter.reset_all()
    yield
    await engine.dispose()


@pytest.fixture
async def db(database):
    async with AsyncSessionLocal() as session:
        yield session


@pytest.fixture
async def client(database):
    app = create_app()
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def school(db):
    school = School(
        school_code=SCHOOL_CODE,
        name="Green Hills School",
        email="office@greenhills.example.com",
        admin_password_hash=get_password_hash(ADMIN_PASSWORD),
        current_academic_year=current_academic_year(),
        status="active",
    )
    db.add(school)
    await db.commit()
    return school


@pytest.fixture
async def teacher(db, school):
    staff = Staff(
        school_code=school.school_code,
        staff_id="T001",
        full_name="Asha Verma",
        role="teacher",
        designation="Teacher",
        password_hash=get_password_hash(STAFF_PASSWORD),
    )
    db.add(staff)
    await db.commit()
    return staff


@pytest.fixture
async def student(db, school):
    student = Student(
        school_code=school.school_code,
        admission_no="A-100",
        first_name="Ravi",
        last_name="Kumar",
        class_name="5",
        section="A",
        academic_year=school.current_academic_year,
        status="active",
    )
    db.add(student)
    await db.commit()
    return student


async def login(client: httpx.AsyncClient, path: str, body: dict) -> dict:
    """Log in and return headers carrying the session; the cookie jar is cleared so calls stay explicit"""
    response = await client.post(path, json=body)
    assert response.status_code == 200, response.text
    token = response.cookies.get(CookieConfig.SESSION_COOKIE_KEY)
    client.cookies.clear()
    return {"Authorization": f"Session {token}"}


@pytest.fixture
async def admin_headers(client, school):
    return await login(client, "/api/auth/school/login", {"school_code": SCHOOL_CODE, "password": ADMIN_PASSWORD})


@pytest.fixture
async def teacher_headers(client, teacher):
    return await login(
        client, "/api/auth/staff/login",
        {"school_code": SCHOOL_CODE, "staff_id": teacher.staff_id, "password": STAFF_PASSWORD},
    )
