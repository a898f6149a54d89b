from typing import List, Optional
from decimal import Decimal
import uuid

from pydantic import BaseModel, Field

from school_erp.schemas.common import SchoolScoped


class VehicleCreateRequest(SchoolScoped):
    vehicle_number: str = Field(..., min_length=1, max_length=30)
    vehicle_type: str = "bus"
    seats: int = Field(..., gt=0)
    driver_name: Optional[str] = None
    driver_phone: Optional[str] = None


class RouteCreateRequest(SchoolScoped):
    route_name: str = Field(..., min_length=1, max_length=100)
    vehicle_id: Optional[uuid.UUID] = None
    stops: List[str] = []
    monthly_fee: Decimal = Field(Decimal("0"), ge=0)


class RouteUpdateRequest(BaseModel):
    route_name: Optional[str] = None
    vehicle_id: Optional[uuid.UUID] = None
    stops: Optional[List[str]] = None
    monthly_fee: Optional[Decimal] = Field(None, ge=0)
    is_active: Optional[bool] = None


class AssignStudentsRequest(SchoolScoped):
    vehicle_id: uuid.UUID
    route_id: Optional[uuid.UUID] = None
    student_ids: List[uuid.UUID] = Field(..., min_length=1)
    pickup_stop: Optional[str] = None
