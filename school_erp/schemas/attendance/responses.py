from typing import Optional
from datetime import date
import uuid

from school_erp.schemas.common import ORMModel


class StudentAttendanceResponse(ORMModel):
    id: uuid.UUID
    student_id: uuid.UUID
    class_id: Optional[uuid.UUID] = None
    attendance_date: date
    status: str
    remarks: Optional[str] = None
    marked_by: Optional[str] = None
