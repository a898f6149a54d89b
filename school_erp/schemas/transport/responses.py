from typing import List, Optional
import uuid

from pydantic import BaseModel

from school_erp.schemas.common import Numeric, ORMModel


class VehicleResponse(ORMModel):
    id: uuid.UUID
    vehicle_number: str
    vehicle_type: str
    seats: int
    driver_name: Optional[str] = None
    driver_phone: Optional[str] = None
    is_active: bool


class RouteResponse(ORMModel):
    id: uuid.UUID
    route_name: str
    vehicle_id: Optional[uuid.UUID] = None
    stops: List[str] = []
    monthly_fee: Numeric
    is_active: bool


class AssignmentResponse(BaseModel):
    id: uuid.UUID
    student_id: uuid.UUID
    student_name: str
    admission_no: str
    class_name: str
    vehicle_id: uuid.UUID
    vehicle_number: str
    route_id: Optional[uuid.UUID] = None
    route_name: Optional[str] = None
    pickup_stop: Optional[str] = None
