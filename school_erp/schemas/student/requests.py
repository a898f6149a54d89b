from typing import Any, Dict, List, Optional
from datetime import date

from pydantic import EmailStr, Field, field_validator

from school_erp.schemas.common import SchoolScoped


class StudentCreateRequest(SchoolScoped):
    admission_no: str = Field(..., min_length=1, max_length=50)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: Optional[str] = None
    class_name: str = Field(..., min_length=1, max_length=50)
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
    parent_email: Optional[EmailStr] = None
    address: Optional[str] = None
    status: Optional[str] = None
    password: Optional[str] = Field(None, min_length=6)

    @field_validator("admission_no", "first_name", "class_name")
    @classmethod
    def strip_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class StudentBulkRequest(SchoolScoped):
    rows: List[Dict[str, Any]]
    academic_year: Optional[str] = None
