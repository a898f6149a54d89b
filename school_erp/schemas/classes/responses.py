from typing import Optional
import uuid

from pydantic import BaseModel

from school_erp.schemas.common import ORMModel


class ClassResponse(ORMModel):
    id: uuid.UUID
    school_code: str
    class_name: str
    section: Optional[str] = None
    academic_year: Optional[str] = None
    class_teacher_id: Optional[uuid.UUID] = None
    class_teacher_staff_id: Optional[str] = None
    capacity: Optional[int] = None
    room_number: Optional[str] = None


class ClassOverview(BaseModel):
    id: uuid.UUID
    class_name: str
    section: Optional[str] = None
    academic_year: Optional[str] = None
    class_teacher: Optional[str] = None
    student_count: int
