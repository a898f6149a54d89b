from dataclasses import dataclass
from typing import Any, Dict, List, Optional
import logging

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.errors import InvalidCredentialsException, PermissionDenied
from school_erp.core.security import (
    AuthCookie, Role, encode_auth_cookie, generate_password, get_password_hash, verify_password
)
from school_erp.models import School, Staff, Student, UserSession
from school_erp.services.audit_service import AuditService
from school_erp.services.session_service import SessionService

logger = logging.getLogger(__name__)

LOGIN_REDIRECTS = {
    Role.SCHOOL: "/dashboard/{school_code}",
    Role.TEACHER: "/teacher/dashboard",
    Role.ACCOUNTANT: "/accountant/dashboard",
    Role.STUDENT: "/student/dashboard",
}


@dataclass
class LoginResult:
    session: UserSession
    auth_token: str
    user: Dict[str, Any]

    @property
    def redirect(self) -> str:
        return LOGIN_REDIRECTS[self.session.role].format(school_code=self.session.school_code)


@dataclass
class ClientInfo:
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class AuthService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.sessions = SessionService(db)
        self.audit = AuditService(db)

    async def _get_school(self, school_code: str) -> School:
        school = (await self.db.execute(
            select(School).where(School.school_code == school_code)
        )).scalar_one_or_none()
        if school is None:
            raise InvalidCredentialsException()
        if not school.is_active:
            raise PermissionDenied("School account is not active")
        return school

    async def _audit(self, client: ClientInfo, role: str, status: str, school_code: str,
                     user_id: Optional[str] = None, name: Optional[str] = None) -> None:
        await self.audit.log_login(
            role=role,
            status=status,
            school_code=school_code,
            user_id=user_id,
            name=name,
            ip_address=client.ip_address,
            user_agent=client.user_agent,
        )

    async def _start_session(self, role: str, user_id: str, school_code: str, user: Dict[str, Any]) -> LoginResult:
        session = await self.sessions.create_session(role, user_id, school_code, user)
        token = encode_auth_cookie(AuthCookie(role=role, school_code=school_code, user_id=str(user_id)))
        return LoginResult(session=session, auth_token=token, user=user)

    async def login_school(self, school_code: str, password: str, client: ClientInfo) -> LoginResult:
        school = await self._get_school(school_code)
        if not verify_password(password, school.admin_password_hash):
            await self._audit(client, Role.SCHOOL, "failed", school_code, str(school.id), school.name)
            raise InvalidCredentialsException()

        await self._audit(client, Role.SCHOOL, "success", school_code, str(school.id), school.name)
        logger.info(f"School admin login for {school_code}")
        return await self._start_session(
            Role.SCHOOL, str(school.id), school_code, {"name": school.name, "school_code": school_code}
        )

    async def login_staff(
        self, school_code: str, staff_code: str, password: str, client: ClientInfo, as_accountant: bool = False
    ) -> LoginResult:
        await self._get_school(school_code)
        role = Role.ACCOUNTANT if as_accountant else Role.TEACHER

        staff = (await self.db.execute(
            select(Staff).where(
                Staff.school_code == school_code,
                func.upper(Staff.staff_id) == staff_code.strip().upper(),
            )
        )).scalar_one_or_none()
        if staff is None or not verify_password(password, staff.password_hash):
            await self._audit(client, role, "failed", school_code, staff_code)
            raise InvalidCredentialsException()
        if not staff.is_active:
            raise PermissionDenied("Staff account is not active")
        if as_accountant and not staff.is_accountant:
            raise PermissionDenied("Staff member is not an accountant")

        await self._audit(client, role, "success", school_code, staff.staff_id, staff.full_name)
        return await self._start_session(role, str(staff.id), school_code, {
            "name": staff.full_name,
            "staff_id": staff.staff_id,
            "designation": staff.designation,
        })

    async def login_student(self, school_code: str, admission_no: str, password: str, client: ClientInfo) -> LoginResult:
        await self._get_school(school_code)
        student = (await self.db.execute(
            select(Student).where(
                Student.school_code == school_code,
                Student.admission_no == admission_no.strip(),
            )
        )).scalar_one_or_none()
        if student is None or not verify_password(password, student.password_hash):
            await self._audit(client, Role.STUDENT, "failed", school_code, admission_no)
            raise InvalidCredentialsException()
        if student.status != "active":
            raise PermissionDenied("Student account is not active")

        await self._audit(client, Role.STUDENT, "success", school_code, student.admission_no, student.full_name)
        return await self._start_session(Role.STUDENT, str(student.id), school_code, {
            "name": student.full_name,
            "admission_no": student.admission_no,
            "class": student.class_name,
            "section": student.section,
        })

    async def logout(self, token: Optional[str]) -> None:
        await self.sessions.destroy_session(token)

    async def generate_passwords(
        self,
        school_code: str,
        target: str,
        overwrite: bool = False,
        class_name: Optional[str] = None
    ) -> List[Dict[str, str]]:
        """
        Give every student or staff member without a password (all of them with
        `overwrite`) a fresh one. Plain passwords are only returned here.
        """
        if target == "students":
            query = select(Student).where(Student.school_code == school_code, Student.status == "active")
            if class_name:
                query = query.where(func.lower(Student.class_name) == class_name.strip().lower())
        else:
            query = select(Staff).where(Staff.school_code == school_code, Staff.is_active.is_(True))
        if not overwrite:
            model = Student if target == "students" else Staff
            query = query.where(model.password_hash.is_(None))

        credentials = []
        for person in (await self.db.execute(query)).scalars().all():
            password = generate_password()
            person.password_hash = get_password_hash(password)
            is_student = target == "students"
            credentials.append({
                "id": str(person.id),
                "login_id": person.admission_no if is_student else person.staff_id,
                "name": person.full_name,
                "password": password,
            })
            if overwrite:
                role = Role.STUDENT if is_student else Role.TEACHER
                await self.sessions.destroy_sessions_for_user(role, str(person.id))
        await self.db.commit()
        logger.info(f"Generated {len(credentials)} {target} passwords for {school_code}")
        return credentials
