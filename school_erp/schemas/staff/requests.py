from typing import List, Optional
from datetime import date
import uuid

from pydantic import BaseModel, EmailStr, Field

from school_erp.schemas.common import SchoolScoped


class StaffCreateRequest(SchoolScoped):
    staff_id: Optional[str] = Field(None, max_length=30)
    full_name: str = Field(..., min_length=1, max_length=150)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    designation: Optional[str] = None
    department: Optional[str] = None
    role: str = "teacher"
    gender: Optional[str] = None
    date_of_birth: Optional[date] = None
    date_of_joining: Optional[date] = None
    qualification: Optional[str] = None
    address: Optional[str] = None
    password: Optional[str] = Field(None, min_length=6)


class StaffUpdateRequest(BaseModel):
    full_name: Optional[str] = Field(None, min_length=1, max_length=150)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    designation: Optional[str] = None
    department: Optional[str] = None
    role: Optional[str] = None
    gender: Optional[str] = None
    date_of_birth: Optional[date] = None
    date_of_joining: Optional[date] = None
    qualification: Optional[str] = None
    address: Optional[str] = None
    is_active: Optional[bool] = None


class StaffRolesRequest(BaseModel):
    role_ids: List[uuid.UUID]


class StaffPermissionEntry(BaseModel):
    sub_module_key: str
    category_key: str = "view"
    view_access: bool = False
    edit_access: bool = False


class StaffPermissionsRequest(BaseModel):
    permissions: List[StaffPermissionEntry]
