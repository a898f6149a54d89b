from typing import Any, Dict, Optional
import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import get_db
from school_erp.core.dependencies import CurrentSession, resolve_school
from school_erp.core.permissions import require_permission
from school_erp.schemas.transport.requests import (
    AssignStudentsRequest,
    RouteCreateRequest,
    RouteUpdateRequest,
    VehicleCreateRequest,
)
from school_erp.schemas.transport.responses import AssignmentResponse, RouteResponse, VehicleResponse
from school_erp.services.transport_service import TransportService

router = APIRouter(prefix="/api/transport", tags=["Transport"])

SUB_MODULE = "transport_management"


def get_transport_service(db: AsyncSession = Depends(get_db)) -> TransportService:
    return TransportService(db)


@router.get("/vehicles")
async def list_vehicles(
    school_code: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(SUB_MODULE)),
    db: AsyncSession = Depends(get_db),
    transport_service: TransportService = Depends(get_transport_service)
) -> Dict[str, Any]:
    """Vehicles with current occupancy and free seats"""
    school = await resolve_school(db, school_code, session)
    return {"data": await transport_service.list_vehicles(school.school_code)}


@router.post("/vehicles", status_code=201)
async def create_vehicle(
    body: VehicleCreateRequest,
    session: CurrentSession = Depends(require_permission(SUB_MODULE, "edit")),
    db: AsyncSession = Depends(get_db),
    transport_service: TransportService = Depends(get_transport_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, body.school_code, session)
    vehicle = await transport_service.create_vehicle(school.school_code, body)
    return {"data": VehicleResponse.model_validate(vehicle).model_dump()}


@router.get("/routes")
async def list_routes(
    school_code: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(SUB_MODULE)),
    db: AsyncSession = Depends(get_db),
    transport_service: TransportService = Depends(get_transport_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    routes = await transport_service.list_routes(school.school_code)
    return {"data": [RouteResponse.model_validate(r).model_dump() for r in routes]}


@router.post("/routes", status_code=201)
async def create_route(
    body: RouteCreateRequest,
    session: CurrentSession = Depends(require_permission(SUB_MODULE, "edit")),
    db: AsyncSession = Depends(get_db),
    transport_service: TransportService = Depends(get_transport_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, body.school_code, session)
    route = await transport_service.create_route(school.school_code, body)
    return {"data": RouteResponse.model_validate(route).model_dump()}


@router.patch("/routes/{route_id}")
async def update_route(
    route_id: uuid.UUID,
    body: RouteUpdateRequest,
    school_code: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(SUB_MODULE, "edit")),
    db: AsyncSession = Depends(get_db),
    transport_service: TransportService = Depends(get_transport_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    route = await transport_service.update_route(school.school_code, route_id, body)
    return {"data": RouteResponse.model_validate(route).model_dump()}


@router.post("/assignments")
async def assign_students(
    body: AssignStudentsRequest,
    session: CurrentSession = Depends(require_permission(SUB_MODULE, "edit")),
    db: AsyncSession = Depends(get_db),
    transport_service: TransportService = Depends(get_transport_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, body.school_code, session)
    return {"data": await transport_service.assign_students(school.school_code, body)}


@router.delete("/assignments/{student_id}")
async def unassign_student(
    student_id: uuid.UUID,
    school_code: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(SUB_MODULE, "edit")),
    db: AsyncSession = Depends(get_db),
    transport_service: TransportService = Depends(get_transport_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    await transport_service.unassign_student(school.school_code, student_id)
    return {"data": {"student_id": student_id, "unassigned": True}}


@router.get("/assignments")
async def list_assignments(
    school_code: Optional[str] = Query(None),
    vehicle_id: Optional[uuid.UUID] = Query(None),
    route_id: Optional[uuid.UUID] = Query(None),
    session: CurrentSession = Depends(require_permission(SUB_MODULE)),
    db: AsyncSession = Depends(get_db),
    transport_service: TransportService = Depends(get_transport_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    rows = await transport_service.list_assignments(school.school_code, vehicle_id, route_id)
    return {"data": [AssignmentResponse(**row).model_dump() for row in rows]}
