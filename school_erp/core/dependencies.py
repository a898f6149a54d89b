from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Set
import uuid
import logging

from fastapi import Depends, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import get_db
from school_erp.core.errors import AuthenticationError, PermissionDenied, ValidationError, NotFoundError
from school_erp.core.security import Role
from school_erp.models import School, Staff, Student
from school_erp.services.session_service import SessionService
from school_erp.utils.cookie_utils import get_session_token

logger = logging.getLogger(__name__)


@dataclass
class CurrentSession:
    token: str
    role: str
    user_id: str
    school_code: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_school_admin(self) -> bool:
        return self.role == Role.SCHOOL

    @property
    def is_staff(self) -> bool:
        return self.role in Role.STAFF

    @property
    def user_uuid(self) -> Optional[uuid.UUID]:
        try:
            return uuid.UUID(str(self.user_id))
        except ValueError:
            return None

    @property
    def actor(self) -> str:
        """Name recorded as `performed_by` / `collected_by` on writes"""
        if self.is_school_admin:
            return f"admin:{self.school_code}"
        return self.payload.get("staff_id") or self.payload.get("admission_no") or str(self.user_id)


async def get_current_session(request: Request, db: AsyncSession = Depends(get_db)) -> CurrentSession:
    token = get_session_token(request)
    if not token:
        raise AuthenticationError()

    session = await SessionService(db).get_session(token, sliding=True)
    if session is None:
        raise AuthenticationError("Session expired")

    current = CurrentSession(
        token=session.session_token,
        role=session.role,
        user_id=session.user_id,
        school_code=session.school_code,
        payload=session.user_payload or {},
    )
    request.state.user_id = current.user_id
    request.state.school_code = current.school_code
    return current


class RoleChecker:
    """Dependency that admits only sessions with one of the given roles"""

    def __init__(self, allowed_roles: Set[str]):
        self.allowed_roles = set(allowed_roles)

    async def __call__(self, session: CurrentSession = Depends(get_current_session)) -> CurrentSession:
        if session.role not in self.allowed_roles:
            logger.warning(f"Role {session.role} denied; requires one of {sorted(self.allowed_roles)}")
            raise PermissionDenied()
        return session


require_school_admin = RoleChecker({Role.SCHOOL})
require_staff_or_admin = RoleChecker({Role.SCHOOL, Role.TEACHER, Role.ACCOUNTANT})
require_student = RoleChecker({Role.STUDENT})


def normalize_school_code(school_code: Optional[str]) -> str:
    code = (school_code or "").strip().upper()
    if not code:
        raise ValidationError("School code is required")
    return code


async def resolve_school(
    db: AsyncSession,
    school_code: Optional[str],
    session: Optional[CurrentSession] = None
) -> School:
    """
    Load the tenant named by `school_code`. A session may only reach its own school.
    When the request omits the code, the session's school is used.
    """
    if not school_code and session is not None:
        school_code = session.school_code
    code = normalize_school_code(school_code)

    if session is not None and session.school_code and session.school_code != code:
        raise PermissionDenied("Access to this school is not allowed")

    school = (await db.execute(select(School).where(School.school_code == code))).scalar_one_or_none()
    if school is None:
        raise NotFoundError("School not found")
    return school


async def get_session_staff(db: AsyncSession, session: CurrentSession) -> Optional[Staff]:
    if not session.is_staff or session.user_uuid is None:
        return None
    return (await db.execute(
        select(Staff).where(Staff.id == session.user_uuid, Staff.school_code == session.school_code)
    )).scalar_one_or_none()


async def get_session_student(db: AsyncSession, session: CurrentSession) -> Student:
    if session.role != Role.STUDENT or session.user_uuid is None:
        raise PermissionDenied()
    student = (await db.execute(
        select(Student).where(Student.id == session.user_uuid, Student.school_code == session.school_code)
    )).scalar_one_or_none()
    if student is None:
        raise NotFoundError("Student not found")
    return student
