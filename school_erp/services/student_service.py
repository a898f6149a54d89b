from typing import Any, Dict, List, Optional, Tuple
import uuid
import logging

from sqlalchemy import select, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.errors import BadRequestError, NotFoundError
from school_erp.core.security import get_password_hash
from school_erp.models import Student
from school_erp.schemas.student.requests import StudentCreateRequest
from school_erp.utils.dates import parse_date_string, current_academic_year

logger = logging.getLogger(__name__)

DUPLICATE_ADMISSION = "Admission number already exists"

# Columns a PATCH may touch; anything else in the body is ignored
UPDATABLE_FIELDS = {
    "admission_no", "first_name", "last_name", "class_name", "section", "academic_year",
    "roll_number", "date_of_birth", "gender", "blood_group", "category", "admission_date",
    "father_name", "mother_name", "parent_phone", "parent_email", "address", "status",
    "transport_type",
}
DATE_FIELDS = {"date_of_birth", "admission_date"}
REQUIRED_IMPORT_FIELDS = ("admission_no", "first_name", "class_name")

COLUMN_LABELS = {
    "admission_no": "Admission No",
    "first_name": "First Name",
    "last_name": "Last Name",
    "full_name": "Student Name",
    "class_name": "Class",
    "section": "Section",
    "academic_year": "Academic Year",
    "roll_number": "Roll No",
    "date_of_birth": "Date of Birth",
    "gender": "Gender",
    "blood_group": "Blood Group",
    "category": "Category",
    "admission_date": "Admission Date",
    "father_name": "Father Name",
    "mother_name": "Mother Name",
    "parent_phone": "Parent Phone",
    "parent_email": "Parent Email",
    "address": "Address",
    "transport_type": "Transport",
    "status": "Status",
}
DEFAULT_EXPORT_COLUMNS = [
    "admission_no", "full_name", "class_name", "section", "roll_number",
    "gender", "date_of_birth", "father_name", "parent_phone", "status",
]
TEMPLATE_COLUMNS = [
    "admission_no", "first_name", "last_name", "class_name", "section", "roll_number",
    "date_of_birth", "gender", "admission_date", "father_name", "mother_name",
    "parent_phone", "parent_email", "address",
]

_HEADER_ALIASES = {label.lower(): key for key, label in COLUMN_LABELS.items()}
_HEADER_ALIASES.update({"class": "class_name", "admission number": "admission_no", "adm no": "admission_no"})


def normalize_header(header: str) -> str:
    text = str(header or "").strip()
    alias = _HEADER_ALIASES.get(text.lower())
    if alias:
        return alias
    return text.lower().replace(" ", "_").replace("-", "_")


def _clean(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


class StudentService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_student(self, school_code: str, student_id: uuid.UUID) -> Student:
        student = (await self.db.execute(
            select(Student).where(Student.id == student_id, Student.school_code == school_code)
        )).scalar_one_or_none()
        if student is None:
            raise NotFoundError("Student not found")
        return student

    async def list_students(
        self,
        school_code: str,
        class_name: Optional[str] = None,
        section: Optional[str] = None,
        status: Optional[str] = None,
        academic_year: Optional[str] = None,
        search: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0
    ) -> Tuple[List[Student], int]:
        query = select(Student).where(Student.school_code == school_code)
        if class_name:
            query = query.where(func.lower(Student.class_name) == class_name.strip().lower())
        if section:
            query = query.where(Student.section == section.strip().upper())
        if status:
            if status == "deactivated":
                query = query.where(Student.status.in_(["deactivated", "inactive"]))
            else:
                query = query.where(Student.status == status)
        if academic_year:
            query = query.where(Student.academic_year == academic_year)
        if search:
            pattern = f"%{search.strip().lower()}%"
            query = query.where(or_(
                func.lower(Student.first_name).like(pattern),
                func.lower(Student.last_name).like(pattern),
                func.lower(Student.admission_no).like(pattern),
                Student.parent_phone.like(pattern),
            ))

        total = await self.db.scalar(select(func.count()).select_from(query.subquery()))
        query = query.order_by(Student.class_name, Student.section, Student.roll_number, Student.first_name)
        if limit:
            query = query.offset(offset).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all()), total or 0

    async def _admission_taken(self, school_code: str, admission_no: str,
                               exclude_id: Optional[uuid.UUID] = None) -> bool:
        query = select(Student.id).where(
            Student.school_code == school_code,
            Student.admission_no == admission_no,
        )
        if exclude_id is not None:
            query = query.where(Student.id != exclude_id)
        return (await self.db.execute(query)).first() is not None

    async def create_student(self, school_code: str, data: StudentCreateRequest,
                             default_year: Optional[str] = None) -> Student:
        if await self._admission_taken(school_code, data.admission_no):
            raise BadRequestError(DUPLICATE_ADMISSION)

        values = data.model_dump(exclude={"school_code", "password"})
        values["section"] = values["section"].strip().upper() if values.get("section") else None
        values["academic_year"] = values.get("academic_year") or default_year or current_academic_year()
        values["status"] = values.get("status") or "active"

        student = Student(school_code=school_code, **values)
        if data.password:
            student.password_hash = get_password_hash(data.password)

        self.db.add(student)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise BadRequestError(DUPLICATE_ADMISSION)
        logger.info(f"Student {student.admission_no} created for {school_code}")
        return student

    async def update_student(self, school_code: str, student_id: uuid.UUID, changes: Dict[str, Any]) -> Student:
        student = await self.get_student(school_code, student_id)

        updates = {}
        for field, value in changes.items():
            if field not in UPDATABLE_FIELDS:
                continue
            value = _clean(value)
            if field in DATE_FIELDS and value is not None:
                parsed = parse_date_string(value)
                if parsed is None:
                    raise BadRequestError(f"Invalid date for {field}")
                value = parsed
            updates[field] = value

        for required in REQUIRED_IMPORT_FIELDS:
            if required in updates and updates[required] is None:
                raise BadRequestError(f"{required} cannot be empty")

        if updates.get("admission_no") and updates["admission_no"] != student.admission_no:
            if await self._admission_taken(school_code, updates["admission_no"], exclude_id=student.id):
                raise BadRequestError(DUPLICATE_ADMISSION)
        if updates.get("section"):
            updates["section"] = updates["section"].upper()

        for field, value in updates.items():
            setattr(student, field, value)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise BadRequestError(DUPLICATE_ADMISSION)
        return student

    async def delete_student(self, school_code: str, student_id: uuid.UUID, hard: bool = False) -> Student:
        student = await self.get_student(school_code, student_id)
        if hard:
            await self.db.delete(student)
        else:
            student.status = "deactivated"
        await self.db.commit()
        logger.info(f"Student {student.admission_no} {'deleted' if hard else 'deactivated'} ({school_code})")
        return student

    async def set_photo(self, school_code: str, student_id: uuid.UUID, photo_url: str) -> Student:
        student = await self.get_student(school_code, student_id)
        student.photo_url = photo_url
        await self.db.commit()
        return student

    # Bulk import

    @staticmethod
    def normalize_rows(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [{normalize_header(k): _clean(v) for k, v in row.items()} for row in rows]

    async def validate_rows(self, school_code: str, rows: List[Dict[str, Any]]) -> Tuple[List[Dict[str, Any]], List[Dict]]:
        """
        Check import rows. Returns (clean rows ready to insert, per-row errors).
        Row numbers are 1-based data rows as the user sees them in the sheet.
        """
        rows = self.normalize_rows(rows)
        admissions = [str(r.get("admission_no")) for r in rows if r.get("admission_no")]
        existing = set()
        if admissions:
            existing = set((await self.db.execute(
                select(Student.admission_no).where(
                    Student.school_code == school_code,
                    Student.admission_no.in_(admissions),
                )
            )).scalars().all())

        seen = set()
        valid, errors = [], []
        for index, row in enumerate(rows, start=1):
            row_errors = []
            for field in REQUIRED_IMPORT_FIELDS:
                if not row.get(field):
                    row_errors.append(f"{COLUMN_LABELS[field]} is required")

            admission_no = str(row["admission_no"]) if row.get("admission_no") else None
            if admission_no:
                if admission_no in seen:
                    row_errors.append(f"Duplicate admission number {admission_no} in file")
                elif admission_no in existing:
                    row_errors.append(f"{DUPLICATE_ADMISSION}: {admission_no}")
                seen.add(admission_no)

            clean = {k: v for k, v in row.items() if k in UPDATABLE_FIELDS}
            for field in DATE_FIELDS:
                if row.get(field) is not None:
                    parsed = parse_date_string(row[field])
                    if parsed is None:
                        row_errors.append(f"Invalid {COLUMN_LABELS[field]}: {row[field]}")
                    clean[field] = parsed
            for field in ("admission_no", "class_name", "roll_number", "parent_phone"):
                if clean.get(field) is not None:
                    clean[field] = str(clean[field])

            if row_errors:
                errors.append({"row": index, "errors": row_errors})
            else:
                valid.append(clean)
        return valid, errors

    async def bulk_insert(self, school_code: str, rows: List[Dict[str, Any]],
                          academic_year: Optional[str] = None) -> Dict[str, Any]:
        valid, errors = await self.validate_rows(school_code, rows)
        for row in valid:
            if row.get("section"):
                row["section"] = str(row["section"]).upper()
            row["academic_year"] = row.get("academic_year") or academic_year or current_academic_year()
            row["status"] = row.get("status") or "active"
            self.db.add(Student(school_code=school_code, **row))
        if valid:
            try:
                await self.db.commit()
            except IntegrityError:
                await self.db.rollback()
                raise BadRequestError(DUPLICATE_ADMISSION)
        logger.info(f"Bulk import for {school_code}: {len(valid)} inserted, {len(errors)} rejected")
        return {"inserted": len(valid), "skipped": len(errors), "errors": errors}

    # Exports

    @staticmethod
    def export_columns(columns: Optional[str]) -> List[str]:
        if not columns:
            return DEFAULT_EXPORT_COLUMNS
        selected = [c.strip() for c in columns.split(",") if c.strip() in COLUMN_LABELS]
        return selected or DEFAULT_EXPORT_COLUMNS

    @staticmethod
    def export_row(student: Student, columns: List[str]) -> Dict[str, Any]:
        return {column: getattr(student, column, None) for column in columns}

    async def siblings(self, school_code: str) -> List[Dict[str, Any]]:
        """Active students grouped by parent phone, groups of two or more only"""
        students, _ = await self.list_students(school_code, status="active")
        groups: Dict[str, List[Student]] = {}
        for student in students:
            if student.parent_phone:
                groups.setdefault(student.parent_phone, []).append(student)
        return [
            {"parent_phone": phone, "students": members}
            for phone, members in sorted(groups.items())
            if len(members) > 1
        ]
