from typing import Literal, Optional
from datetime import date
import uuid

from pydantic import BaseModel, Field, model_validator

from school_erp.schemas.common import SchoolScoped


class LeaveTypeCreateRequest(SchoolScoped):
    name: str = Field(..., min_length=1, max_length=100)
    max_days: Optional[int] = Field(None, gt=0)
    applies_to: Literal["student", "staff", "both"] = "both"


class _DateRange(SchoolScoped):
    leave_type_id: Optional[uuid.UUID] = None
    start_date: date
    end_date: date
    reason: str = Field(..., min_length=1)

    @model_validator(mode="after")
    def check_range(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class StudentLeaveCreateRequest(_DateRange):
    student_id: Optional[uuid.UUID] = None


class StaffLeaveCreateRequest(_DateRange):
    staff_id: Optional[uuid.UUID] = None


class LeaveDecisionRequest(BaseModel):
    action: Literal["approve", "reject"]
    rejection_reason: Optional[str] = None
