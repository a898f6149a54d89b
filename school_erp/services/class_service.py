from typing import Dict, List, Optional
import uuid
import logging

from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.errors import BadRequestError, ConflictError, NotFoundError
from school_erp.models import SchoolClass, Staff, Student
from school_erp.schemas.classes.requests import ClassCreateRequest, ClassUpdateRequest

logger = logging.getLogger(__name__)


class ClassService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_class(self, school_code: str, class_id: uuid.UUID) -> SchoolClass:
        result = await self.db.execute(
            select(SchoolClass).where(SchoolClass.id == class_id, SchoolClass.school_code == school_code)
        )
        school_class = result.scalar_one_or_none()
        if school_class is None:
            raise NotFoundError("Class not found")
        return school_class

    async def list_classes(self, school_code: str, academic_year: Optional[str] = None) -> List[SchoolClass]:
        query = select(SchoolClass).where(SchoolClass.school_code == school_code)
        if academic_year:
            query = query.where(SchoolClass.academic_year == academic_year)
        result = await self.db.execute(query.order_by(SchoolClass.class_name, SchoolClass.section))
        return list(result.unique().scalars().all())

    async def _teacher(self, school_code: str, staff_uuid: Optional[uuid.UUID]) -> Optional[Staff]:
        if staff_uuid is None:
            return None
        staff = (await self.db.execute(
            select(Staff).where(Staff.id == staff_uuid, Staff.school_code == school_code)
        )).scalar_one_or_none()
        if staff is None:
            raise NotFoundError("Class teacher not found")
        return staff

    async def _ensure_unique(self, school_code: str, class_name: str, section: Optional[str],
                             academic_year: Optional[str], exclude_id: Optional[uuid.UUID] = None) -> None:
        query = select(SchoolClass.id).where(
            SchoolClass.school_code == school_code,
            func.lower(SchoolClass.class_name) == class_name.lower(),
            SchoolClass.section.is_(None) if section is None else SchoolClass.section == section,
            SchoolClass.academic_year.is_(None) if academic_year is None else SchoolClass.academic_year == academic_year,
        )
        if exclude_id is not None:
            query = query.where(SchoolClass.id != exclude_id)
        if (await self.db.execute(query)).first():
            raise ConflictError("Class with this section already exists for the academic year")

    async def create_class(self, school_code: str, data: ClassCreateRequest,
                           default_year: Optional[str] = None) -> SchoolClass:
        academic_year = data.academic_year or default_year
        section = data.section.strip().upper() if data.section else None
        class_name = data.class_name.strip()
        await self._ensure_unique(school_code, class_name, section, academic_year)

        teacher = await self._teacher(school_code, data.class_teacher_id)
        school_class = SchoolClass(
            school_code=school_code,
            class_name=class_name,
            section=section,
            academic_year=academic_year,
            class_teacher_id=teacher.id if teacher else None,
            class_teacher_staff_id=teacher.staff_id if teacher else None,
            capacity=data.capacity,
            room_number=data.room_number,
        )
        self.db.add(school_class)
        await self.db.commit()
        await self.db.refresh(school_class)
        logger.info(f"Class {school_class.label} created for {school_code}")
        return school_class

    async def update_class(self, school_code: str, class_id: uuid.UUID, data: ClassUpdateRequest) -> SchoolClass:
        school_class = await self.get_class(school_code, class_id)
        changes = data.model_dump(exclude_unset=True)

        if "class_teacher_id" in changes:
            teacher = await self._teacher(school_code, changes.pop("class_teacher_id"))
            school_class.class_teacher_id = teacher.id if teacher else None
            school_class.class_teacher_staff_id = teacher.staff_id if teacher else None
        if changes.get("section"):
            changes["section"] = changes["section"].strip().upper()

        for field, value in changes.items():
            setattr(school_class, field, value)

        await self._ensure_unique(
            school_code, school_class.class_name, school_class.section,
            school_class.academic_year, exclude_id=school_class.id
        )
        await self.db.commit()
        await self.db.refresh(school_class)
        return school_class

    async def delete_class(self, school_code: str, class_id: uuid.UUID) -> None:
        school_class = await self.get_class(school_code, class_id)
        active = await self.db.scalar(
            select(func.count(Student.id)).where(*self._student_filter(school_class), Student.status == "active")
        )
        if active:
            raise BadRequestError("Class still has active students", details={"active_students": active})
        await self.db.delete(school_class)
        await self.db.commit()

    @staticmethod
    def _student_filter(school_class: SchoolClass):
        conditions = [
            Student.school_code == school_class.school_code,
            func.lower(Student.class_name) == school_class.class_name.lower(),
        ]
        if school_class.section:
            conditions.append(Student.section == school_class.section)
        return conditions

    async def students_in_class(self, school_class: SchoolClass, status: str = "active") -> List[Student]:
        result = await self.db.execute(
            select(Student)
            .where(*self._student_filter(school_class), Student.status == status)
            .order_by(Student.roll_number, Student.first_name)
        )
        return list(result.scalars().all())

    async def overview(self, school_code: str, academic_year: Optional[str] = None) -> List[Dict]:
        classes = await self.list_classes(school_code, academic_year)
        counts_rows = (await self.db.execute(
            select(func.lower(Student.class_name), Student.section, func.count(Student.id))
            .where(and_(Student.school_code == school_code, Student.status == "active"))
            .group_by(func.lower(Student.class_name), Student.section)
        )).all()
        counts = {(name, section): total for name, section, total in counts_rows}

        overview = []
        for school_class in classes:
            key_name = school_class.class_name.lower()
            if school_class.section:
                count = counts.get((key_name, school_class.section), 0)
            else:
                count = sum(v for (name, _), v in counts.items() if name == key_name)
            overview.append({
                "id": school_class.id,
                "class_name": school_class.class_name,
                "section": school_class.section,
                "academic_year": school_class.academic_year,
                "class_teacher": school_class.class_teacher.full_name if school_class.class_teacher else None,
                "student_count": count,
            })
        return overview

    @staticmethod
    def is_class_teacher(school_class: SchoolClass, staff: Staff) -> bool:
        """The class teacher may be recorded by staff row id or by staff code."""
        if school_class.class_teacher_id and school_class.class_teacher_id == staff.id:
            return True
        return bool(
            school_class.class_teacher_staff_id
            and school_class.class_teacher_staff_id.upper() == (staff.staff_id or "").upper()
        )
