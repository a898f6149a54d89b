from typing import Optional
import uuid

from pydantic import BaseModel

from school_erp.schemas.common import ORMModel


class RoleResponse(ORMModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    is_active: bool


class StaffRoleResponse(ORMModel):
    role_id: uuid.UUID
    is_active: bool
    assigned_by: Optional[str] = None


class PermissionCheckResponse(BaseModel):
    allowed: bool
    source: Optional[str] = None
    reason: Optional[str] = None
