from typing import Literal, Optional

from pydantic import Field

from school_erp.schemas.common import SchoolScoped


class SchoolLoginRequest(SchoolScoped):
    password: str = Field(..., min_length=1)


class StaffLoginRequest(SchoolScoped):
    staff_id: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class StudentLoginRequest(SchoolScoped):
    admission_no: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class LoginAuditRequest(SchoolScoped):
    user_id: Optional[str] = None
    name: Optional[str] = None
    role: str
    login_type: str = "password"
    status: Literal["success", "failed"] = "success"


class GeneratePasswordsRequest(SchoolScoped):
    target: Literal["students", "staff"]
    overwrite: bool = False
    class_name: Optional[str] = None
