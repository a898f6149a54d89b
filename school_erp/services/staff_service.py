from typing import List, Optional
import re
import uuid
import logging

from sqlalchemy import select, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.errors import BadRequestError, NotFoundError
from school_erp.core.security import get_password_hash
from school_erp.models import Staff
from school_erp.schemas.staff.requests import StaffCreateRequest, StaffUpdateRequest

logger = logging.getLogger(__name__)

DUPLICATE_STAFF_ID = "Staff ID already exists"
STAFF_ID_PREFIX = "STF"

STAFF_EXPORT_COLUMNS = [
    "staff_id", "full_name", "designation", "department", "role",
    "phone", "email", "date_of_joining", "is_active",
]
STAFF_COLUMN_LABELS = {
    "staff_id": "Staff ID",
    "full_name": "Name",
    "designation": "Designation",
    "department": "Department",
    "role": "Role",
    "phone": "Phone",
    "email": "Email",
    "date_of_joining": "Date of Joining",
    "is_active": "Active",
}


class StaffService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_staff(self, school_code: str, staff_uuid: uuid.UUID) -> Staff:
        staff = (await self.db.execute(
            select(Staff).where(Staff.id == staff_uuid, Staff.school_code == school_code)
        )).scalar_one_or_none()
        if staff is None:
            raise NotFoundError("Staff member not found")
        return staff

    async def list_staff(
        self,
        school_code: str,
        include_inactive: bool = False,
        department: Optional[str] = None,
        search: Optional[str] = None
    ) -> List[Staff]:
        query = select(Staff).where(Staff.school_code == school_code)
        if not include_inactive:
            query = query.where(Staff.is_active.is_(True))
        if department:
            query = query.where(Staff.department == department)
        if search:
            pattern = f"%{search.strip().lower()}%"
            query = query.where(or_(
                func.lower(Staff.full_name).like(pattern),
                func.lower(Staff.staff_id).like(pattern),
            ))
        result = await self.db.execute(query.order_by(Staff.staff_id))
        return list(result.scalars().all())

    async def next_staff_id(self, school_code: str) -> str:
        """STF### after the highest numbered staff id in the school"""
        codes = (await self.db.execute(
            select(Staff.staff_id).where(
                Staff.school_code == school_code,
                Staff.staff_id.like(f"{STAFF_ID_PREFIX}%"),
            )
        )).scalars().all()
        highest = 0
        for code in codes:
            match = re.fullmatch(rf"{STAFF_ID_PREFIX}(\d+)", code.upper())
            if match:
                highest = max(highest, int(match.group(1)))
        return f"{STAFF_ID_PREFIX}{highest + 1:03d}"

    async def create_staff(self, school_code: str, data: StaffCreateRequest) -> Staff:
        staff_code = (data.staff_id or "").strip().upper() or await self.next_staff_id(school_code)
        existing = (await self.db.execute(
            select(Staff.id).where(Staff.school_code == school_code, func.upper(Staff.staff_id) == staff_code)
        )).first()
        if existing:
            raise BadRequestError(DUPLICATE_STAFF_ID)

        staff = Staff(
            school_code=school_code,
            staff_id=staff_code,
            **data.model_dump(exclude={"school_code", "staff_id", "password"}),
        )
        if data.password:
            staff.password_hash = get_password_hash(data.password)

        self.db.add(staff)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise BadRequestError(DUPLICATE_STAFF_ID)
        logger.info(f"Staff {staff_code} created for {school_code}")
        return staff

    async def update_staff(self, school_code: str, staff_uuid: uuid.UUID, data: StaffUpdateRequest) -> Staff:
        staff = await self.get_staff(school_code, staff_uuid)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(staff, field, value)
        await self.db.commit()
        return staff

    async def deactivate_staff(self, school_code: str, staff_uuid: uuid.UUID) -> Staff:
        staff = await self.get_staff(school_code, staff_uuid)
        staff.is_active = False
        await self.db.commit()
        logger.info(f"Staff {staff.staff_id} deactivated ({school_code})")
        return staff

    async def set_photo(self, school_code: str, staff_uuid: uuid.UUID, photo_url: str) -> Staff:
        staff = await self.get_staff(school_code, staff_uuid)
        staff.photo_url = photo_url
        await self.db.commit()
        return staff
