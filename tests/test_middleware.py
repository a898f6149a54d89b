from school_erp.core.security import AuthCookie, Role, encode_auth_cookie
from school_erp.middleware.auth import is_public_path, login_redirect_for
from school_erp.utils.cookie_utils import CookieConfig


def test_public_paths():
    assert is_public_path("/login")
    assert is_public_path("/auth/callback")
    assert not is_public_path("/loginx")
    assert not is_public_path("/dashboard/GHS001")


def test_protected_areas_need_matching_role():
    assert login_redirect_for("/dashboard/GHS001", None) == "/login"
    assert login_redirect_for("/dashboard/GHS001", Role.TEACHER) == "/login"
    assert login_redirect_for("/dashboard/GHS001", Role.SCHOOL) is None
    assert login_redirect_for("/teacher/dashboard", Role.STUDENT) == "/staff/login"
    assert login_redirect_for("/student/dashboard", None) == "/student/login"
    assert login_redirect_for("/accountant/dashboard", Role.ACCOUNTANT) is None


def test_api_and_assets_are_never_redirected():
    assert login_redirect_for("/api/students", None) is None
    assert login_redirect_for("/dashboard/logo.png", None) is None
    assert login_redirect_for("/student", None) is None


async def test_page_request_without_cookie_redirects(client):
    response = await client.get("/teacher/dashboard")
    assert response.status_code == 307
    assert response.headers["location"] == "/staff/login"


async def test_page_request_with_matching_cookie_passes(client):
    token = encode_auth_cookie(AuthCookie(role=Role.SCHOOL, school_code="GHS001", user_id="1"))
    response = await client.get("/dashboard/GHS001", headers={"Cookie": f"{CookieConfig.AUTH_COOKIE_KEY}={token}"})
    # No page is served here, so reaching the router means the middleware let it through
    assert response.status_code == 404


async def test_api_preflight_is_answered(client):
    response = await client.options("/api/students", headers={"Origin": "http://localhost:8081"})
    assert response.status_code == 204
    assert response.headers["access-control-allow-origin"] == "http://localhost:8081"


async def test_api_responses_carry_request_id(client):
    response = await client.get("/api/auth/session", headers={"X-Request-ID": "req-1"})
    assert response.status_code == 401
    assert response.headers["x-request-id"] == "req-1"
    body = response.json()
    assert "error" in body and "details" in body
