from typing import Dict, Optional

from fastapi import Request
from fastapi.responses import RedirectResponse, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from school_erp.core.config import settings
from school_erp.core.logging import logger
from school_erp.core.security import Role, decode_auth_cookie
from school_erp.utils.cookie_utils import CookieConfig

PUBLIC_PATHS = (
    "/login",
    "/staff/login",
    "/student/login",
    "/admin/login",
    "/accountant/login",
    "/signup",
    "/demo",
    "/auth",
)

# (path prefix, role the page needs, login page to send everyone else to)
PROTECTED_AREAS = (
    ("/dashboard/", Role.SCHOOL, "/login"),
    ("/teacher/", Role.TEACHER, "/staff/login"),
    ("/student/", Role.STUDENT, "/student/login"),
    ("/accountant/", Role.ACCOUNTANT, "/accountant/login"),
)


def is_public_path(path: str) -> bool:
    return any(path == p or path.startswith(p + "/") for p in PUBLIC_PATHS)


def cors_headers(origin: Optional[str]) -> Dict[str, str]:
    allowed = settings.ALLOWED_ORIGINS
    allow_origin = origin if origin and origin in allowed else (allowed[0] if allowed else "*")
    return {
        "Access-Control-Allow-Origin": allow_origin,
        "Access-Control-Allow-Methods": "GET, POST, PUT, PATCH, DELETE, OPTIONS",
        "Access-Control-Allow-Headers": "Content-Type, Authorization, X-Session-Token",
        "Access-Control-Max-Age": "86400",
    }


def login_redirect_for(path: str, role: Optional[str]) -> Optional[str]:
    """
    Login page a request for `path` should be sent to, or None when it may pass.
    `role` is the role carried by the auth cookie, None without a valid cookie.
    """
    if path.startswith("/api") or path.startswith("/static") or "." in path.rsplit("/", 1)[-1]:
        return None
    if is_public_path(path) or path.startswith("/admin"):
        return None
    if path == "/student":
        return None
    for prefix, required_role, login_path in PROTECTED_AREAS:
        if path.startswith(prefix):
            return None if role == required_role else login_path
    return None


class AuthRedirectMiddleware(BaseHTTPMiddleware):
    """
    Page-level gatekeeper. API calls get CORS headers (preflights are answered
    here with 204); role-protected page areas redirect to the matching login
    page when the auth cookie is missing or carries another role. API
    authorization itself happens in the route dependencies.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path

        if path.startswith("/api"):
            origin = request.headers.get("origin")
            if request.method == "OPTIONS":
                return Response(status_code=204, headers=cors_headers(origin))
            response = await call_next(request)
            for key, value in cors_headers(origin).items():
                if key not in response.headers:
                    response.headers[key] = value
            return response

        cookie = decode_auth_cookie(request.cookies.get(CookieConfig.AUTH_COOKIE_KEY))
        target = login_redirect_for(path, cookie.role if cookie else None)
        if target is not None:
            logger.info(f"Redirecting {path} to {target}")
            return RedirectResponse(url=target, status_code=307)
        return await call_next(request)
