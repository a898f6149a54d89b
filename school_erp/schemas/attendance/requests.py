from typing import List, Optional
from datetime import date
import uuid

from pydantic import BaseModel, Field

from school_erp.schemas.common import SchoolScoped


class AttendanceEntry(BaseModel):
    student_id: uuid.UUID
    status: str = "present"
    remarks: Optional[str] = None


class MarkAttendanceRequest(SchoolScoped):
    class_id: uuid.UUID
    attendance_date: date
    records: List[AttendanceEntry] = Field(..., min_length=1)


class StaffAttendanceEntry(BaseModel):
    staff_id: uuid.UUID
    status: str = "present"
    check_in: Optional[str] = None
    check_out: Optional[str] = None
    remarks: Optional[str] = None


class StaffAttendanceRequest(SchoolScoped):
    attendance_date: date
    records: List[StaffAttendanceEntry] = Field(..., min_length=1)
