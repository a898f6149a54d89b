from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator


class SchoolSignupRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=200)
    email: EmailStr
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    principal_name: Optional[str] = None
    admin_password: str = Field(..., min_length=6)
    school_code: Optional[str] = Field(None, max_length=20)

    @field_validator("school_code")
    @classmethod
    def normalize_code(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        code = v.strip().upper()
        if not code.isalnum():
            raise ValueError("School code must be alphanumeric")
        return code


class InstituteUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=200)
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    principal_name: Optional[str] = None
    working_days: Optional[List[str]] = None


class ChangeAdminPasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=6)
