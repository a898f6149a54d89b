from typing import Any, Dict, Optional
import re
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.errors import BadRequestError, InvalidCredentialsException
from school_erp.core.security import get_password_hash, verify_password
from school_erp.models import School
from school_erp.schemas.school.requests import SchoolSignupRequest, InstituteUpdateRequest
from school_erp.utils.dates import current_academic_year

logger = logging.getLogger(__name__)


def code_prefix(name: str) -> str:
    """Three-letter prefix from the initials of the school name, padded from the first word."""
    words = re.findall(r"[A-Za-z]+", name or "")
    prefix = "".join(w[0] for w in words)[:3].upper()
    if len(prefix) < 3 and words:
        prefix = (prefix + words[0][1:].upper())[:3]
    return prefix.ljust(3, "S")


class SchoolService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_code(self, school_code: str) -> Optional[School]:
        result = await self.db.execute(select(School).where(School.school_code == school_code))
        return result.scalar_one_or_none()

    async def generate_school_code(self, name: str) -> str:
        """Next free `<PREFIX><NNN>` code for the given school name"""
        prefix = code_prefix(name)
        result = await self.db.execute(
            select(School.school_code).where(School.school_code.like(f"{prefix}%"))
        )
        sequence = 0
        for code in result.scalars().all():
            match = re.fullmatch(rf"{prefix}(\d+)", code)
            if match:
                sequence = max(sequence, int(match.group(1)))
        return f"{prefix}{sequence + 1:03d}"

    async def signup(self, data: SchoolSignupRequest) -> School:
        existing_email = await self.db.execute(select(School.id).where(School.email == data.email))
        if existing_email.scalar_one_or_none():
            raise BadRequestError("School with this email already exists")

        code = data.school_code
        if code:
            if await self.get_by_code(code):
                raise BadRequestError("School code already exists")
        else:
            code = await self.generate_school_code(data.name)

        school = School(
            school_code=code,
            name=data.name.strip(),
            email=data.email,
            phone=data.phone,
            address=data.address,
            city=data.city,
            state=data.state,
            principal_name=data.principal_name,
            admin_password_hash=get_password_hash(data.admin_password),
            current_academic_year=current_academic_year(),
            status="active",
        )
        self.db.add(school)
        await self.db.commit()
        logger.info(f"School {code} registered")
        return school

    async def update(self, school: School, data: InstituteUpdateRequest) -> School:
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(school, field, value)
        await self.db.commit()
        return school

    async def set_logo(self, school: School, logo_url: str) -> School:
        school.logo_url = logo_url
        await self.db.commit()
        return school

    async def change_admin_password(self, school: School, current_password: str, new_password: str) -> None:
        if not verify_password(current_password, school.admin_password_hash):
            raise InvalidCredentialsException("Current password is incorrect")
        school.admin_password_hash = get_password_hash(new_password)
        await self.db.commit()
        logger.info(f"Admin password changed for {school.school_code}")

    @staticmethod
    def public_profile(school: School) -> Dict[str, Any]:
        return {
            "school_code": school.school_code,
            "name": school.name,
            "logo_url": school.logo_url,
            "current_academic_year": school.current_academic_year,
        }
