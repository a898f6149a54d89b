from typing import List, Optional

from pydantic import BaseModel, Field

from school_erp.schemas.common import SchoolScoped
from school_erp.schemas.staff.requests import StaffPermissionEntry


class RoleCreateRequest(SchoolScoped):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None


class RoleUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    is_active: Optional[bool] = None


class RolePermissionsRequest(BaseModel):
    permissions: List[StaffPermissionEntry]
