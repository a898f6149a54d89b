from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import secrets
import string
from typing import Dict, Optional, Any
import logging

from jose import JWTError, jwt
from passlib.context import CryptContext

from school_erp.core.config import settings, get_session_ttl

logger = logging.getLogger(__name__)


class SecurityConfig:
    """Security configuration constants"""
    MIN_PASSWORD_LENGTH = 6
    GENERATED_PASSWORD_LENGTH = 8
    SESSION_TOKEN_BYTES = 32


class Role:
    SCHOOL = "school"
    TEACHER = "teacher"
    STUDENT = "student"
    ACCOUNTANT = "accountant"

    ALL = {SCHOOL, TEACHER, STUDENT, ACCOUNTANT}
    STAFF = {TEACHER, ACCOUNTANT}


pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__default_rounds=settings.BCRYPT_ROUNDS
)


def get_password_hash(password: str) -> str:
    """Hash password using bcrypt"""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Verify password against hash; a missing hash never matches"""
    if not plain_password or not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        logger.warning("Stored password hash is not a recognised format")
        return False


def generate_password(length: int = SecurityConfig.GENERATED_PASSWORD_LENGTH) -> str:
    """Readable random password: letters and digits, at least one of each"""
    if length < SecurityConfig.MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password length must be at least {SecurityConfig.MIN_PASSWORD_LENGTH} characters")
    alphabet = string.ascii_letters + string.digits
    while True:
        password = "".join(secrets.choice(alphabet) for _ in range(length))
        if any(c.isdigit() for c in password) and any(c.isalpha() for c in password):
            return password


def generate_session_token() -> str:
    return secrets.token_hex(SecurityConfig.SESSION_TOKEN_BYTES)


@dataclass
class AuthCookie:
    role: str
    school_code: Optional[str] = None
    user_id: Optional[str] = None

    @property
    def tag(self) -> str:
        return format_role_tag(self.role, self.school_code)


def format_role_tag(role: str, school_code: Optional[str] = None) -> str:
    """
    `school:<CODE>` for a school admin session, the bare role otherwise.
    """
    if role == Role.SCHOOL:
        if not school_code:
            raise ValueError("School sessions need a school code")
        return f"{Role.SCHOOL}:{school_code.strip().upper()}"
    if role not in Role.ALL:
        raise ValueError(f"Unknown role: {role}")
    return role


def parse_role_tag(tag: Optional[str]) -> Optional[AuthCookie]:
    """Inverse of format_role_tag; malformed tags give None"""
    if not tag:
        return None
    if tag.startswith(f"{Role.SCHOOL}:"):
        code = tag.split(":", 1)[1].strip()
        return AuthCookie(role=Role.SCHOOL, school_code=code.upper()) if code else None
    if tag in Role.STAFF or tag == Role.STUDENT:
        return AuthCookie(role=tag)
    return None


def encode_auth_cookie(cookie: AuthCookie, expires_delta: Optional[timedelta] = None) -> str:
    """Sign the role tag into a short-lived JWT"""
    expire = datetime.now(timezone.utc) + (expires_delta or get_session_ttl())
    payload: Dict[str, Any] = {
        "tag": cookie.tag,
        "sub": cookie.user_id,
        "school_code": cookie.school_code,
        "exp": expire,
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_auth_cookie(token: Optional[str]) -> Optional[AuthCookie]:
    if not token:
        return None
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError as e:
        logger.debug(f"Auth cookie rejected: {str(e)}")
        return None

    cookie = parse_role_tag(payload.get("tag"))
    if cookie is None:
        return None
    cookie.user_id = payload.get("sub")
    if cookie.school_code is None:
        cookie.school_code = payload.get("school_code")
    return cookie
