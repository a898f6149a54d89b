from typing import Optional
from datetime import date, datetime
import uuid

from school_erp.schemas.common import ORMModel


class LeaveTypeResponse(ORMModel):
    id: uuid.UUID
    name: str
    max_days: Optional[int] = None
    applies_to: str
    is_active: bool


class StudentLeaveResponse(ORMModel):
    id: uuid.UUID
    student_id: uuid.UUID
    leave_type_id: Optional[uuid.UUID] = None
    start_date: date
    end_date: date
    reason: str
    status: str
    rejection_reason: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    created_at: datetime


class StaffLeaveResponse(ORMModel):
    id: uuid.UUID
    staff_id: uuid.UUID
    leave_type_id: Optional[uuid.UUID] = None
    start_date: date
    end_date: date
    reason: str
    status: str
    reviewed_by: Optional[str] = None
    rejection_reason: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    created_at: datetime
