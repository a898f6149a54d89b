from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional
import logging

from fastapi import Request, Response

from school_erp.core.config import settings

logger = logging.getLogger(__name__)


class CookieConfig:
    """Cookie configuration constants"""
    LOCAL_HOSTS = ["localhost", "127.0.0.1"]
    AUTH_COOKIE_KEY = "auth_token"
    SESSION_COOKIE_KEY = "session_id"


def get_cookie_settings(request: Request) -> Dict[str, Any]:
    host = request.headers.get("host", "").split(":")[0]
    is_localhost = host in CookieConfig.LOCAL_HOSTS
    cookie_settings = {
        "httponly": True,
        "secure": settings.COOKIE_SECURE and not is_localhost,
        "samesite": settings.COOKIE_SAMESITE,
        "path": settings.COOKIE_PATH,
    }
    logger.debug(f"Cookie settings generated for {host}: {cookie_settings}")
    return cookie_settings


def set_auth_cookies(
    response: Response,
    request: Request,
    auth_token: str,
    session_token: str,
    ttl_minutes: Optional[int] = None
) -> None:
    """Set the role-tag cookie read by page middleware and the session cookie read by the API."""
    ttl_minutes = ttl_minutes or settings.SESSION_TTL_MINUTES
    cookie_settings = get_cookie_settings(request)
    expires = datetime.now(timezone.utc) + timedelta(minutes=ttl_minutes)

    for key, value in (
        (CookieConfig.AUTH_COOKIE_KEY, auth_token),
        (CookieConfig.SESSION_COOKIE_KEY, session_token),
    ):
        response.set_cookie(
            key=key,
            value=value,
            expires=expires,
            max_age=ttl_minutes * 60,
            **cookie_settings
        )


def clear_auth_cookies(response: Response, request: Request) -> None:
    cookie_settings = get_cookie_settings(request)
    for key in (CookieConfig.AUTH_COOKIE_KEY, CookieConfig.SESSION_COOKIE_KEY):
        response.delete_cookie(key=key, **cookie_settings)


def get_session_token(request: Request) -> Optional[str]:
    token = request.cookies.get(CookieConfig.SESSION_COOKIE_KEY)
    if token:
        return token
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Session "):
        return auth_header[len("Session "):].strip() or None
    return None
