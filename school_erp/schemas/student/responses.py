from typing import List, Optional
from datetime import date, datetime
import uuid

from pydantic import BaseModel

from school_erp.schemas.common import ORMModel, RowError


class StudentResponse(ORMModel):
    id: uuid.UUID
    school_code: str
    admission_no: str
    first_name: str
    last_name: Optional[str] = None
    full_name: str
    class_name: str
    section: Optional[str] = None
    academic_year: Optional[str] = None
    roll_number: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    blood_group: Optional[str] = None
    category: Optional[str] = None
    admission_date: Optional[date] = None
    father_name: Optional[str] = None
    mother_name: Optional[str] = None
    parent_phone: Optional[str] = None
    parent_email: Optional[str] = None
    address: Optional[str] = None
    photo_url: Optional[str] = None
    transport_type: Optional[str] = None
    status: str
    created_at: datetime


class StudentValidationResult(BaseModel):
    total: int
    valid: int
    invalid: int
    errors: List[RowError]


class StudentBulkResult(BaseModel):
    inserted: int
    skipped: int
    errors: List[RowError]


class SiblingGroup(BaseModel):
    parent_phone: str
    students: List[StudentResponse]
