from typing import Any, Dict, List, Optional
import uuid
import logging

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import transaction
from school_erp.core.errors import BadRequestError, ConflictError, NotFoundError
from school_erp.models import Student, TransportAssignment, TransportRoute, TransportVehicle
from school_erp.schemas.transport.requests import (
    AssignStudentsRequest, RouteCreateRequest, RouteUpdateRequest, VehicleCreateRequest,
)

logger = logging.getLogger(__name__)

SCHOOL_BUS = "School Bus"


class TransportService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_vehicles(self, school_code: str) -> List[Dict[str, Any]]:
        vehicles = (await self.db.execute(
            select(TransportVehicle).where(TransportVehicle.school_code == school_code)
            .order_by(TransportVehicle.vehicle_number)
        )).scalars().all()
        occupancy = dict((await self.db.execute(
            select(TransportAssignment.vehicle_id, func.count(TransportAssignment.id))
            .where(TransportAssignment.school_code == school_code)
            .group_by(TransportAssignment.vehicle_id)
        )).all())
        return [
            {
                "id": v.id,
                "vehicle_number": v.vehicle_number,
                "vehicle_type": v.vehicle_type,
                "seats": v.seats,
                "driver_name": v.driver_name,
                "driver_phone": v.driver_phone,
                "is_active": v.is_active,
                "assigned_students": occupancy.get(v.id, 0),
                "available_seats": max(0, v.seats - occupancy.get(v.id, 0)),
            }
            for v in vehicles
        ]

    async def create_vehicle(self, school_code: str, data: VehicleCreateRequest) -> TransportVehicle:
        vehicle = TransportVehicle(
            school_code=school_code,
            vehicle_number=data.vehicle_number.strip().upper(),
            vehicle_type=data.vehicle_type,
            seats=data.seats,
            driver_name=data.driver_name,
            driver_phone=data.driver_phone,
        )
        self.db.add(vehicle)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("Vehicle with this number already exists")
        return vehicle

    async def _vehicle(self, school_code: str, vehicle_id: uuid.UUID) -> TransportVehicle:
        vehicle = (await self.db.execute(
            select(TransportVehicle).where(
                TransportVehicle.id == vehicle_id, TransportVehicle.school_code == school_code
            )
        )).scalar_one_or_none()
        if vehicle is None:
            raise NotFoundError("Vehicle not found")
        return vehicle

    async def _route(self, school_code: str, route_id: uuid.UUID) -> TransportRoute:
        route = (await self.db.execute(
            select(TransportRoute).where(TransportRoute.id == route_id, TransportRoute.school_code == school_code)
        )).scalar_one_or_none()
        if route is None:
            raise NotFoundError("Route not found")
        return route

    async def list_routes(self, school_code: str) -> List[TransportRoute]:
        result = await self.db.execute(
            select(TransportRoute).where(TransportRoute.school_code == school_code)
            .order_by(TransportRoute.route_name)
        )
        return list(result.scalars().all())

    async def create_route(self, school_code: str, data: RouteCreateRequest) -> TransportRoute:
        if data.vehicle_id is not None:
            await self._vehicle(school_code, data.vehicle_id)
        route = TransportRoute(
            school_code=school_code,
            route_name=data.route_name.strip(),
            vehicle_id=data.vehicle_id,
            stops=[stop.strip() for stop in data.stops if stop.strip()],
            monthly_fee=data.monthly_fee,
        )
        self.db.add(route)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("Route with this name already exists")
        await self.db.refresh(route)
        return route

    async def update_route(self, school_code: str, route_id: uuid.UUID, data: RouteUpdateRequest) -> TransportRoute:
        route = await self._route(school_code, route_id)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("vehicle_id") is not None:
            await self._vehicle(school_code, changes["vehicle_id"])
        for field, value in changes.items():
            setattr(route, field, value)
        await self.db.commit()
        await self.db.refresh(route)
        return route

    async def assign_students(self, school_code: str, data: AssignStudentsRequest) -> Dict[str, Any]:
        """
        Put students on a vehicle. The whole batch is refused when it would take
        the vehicle past its seat count.
        """
        vehicle = await self._vehicle(school_code, data.vehicle_id)
        if data.route_id is not None:
            await self._route(school_code, data.route_id)

        student_ids = list(dict.fromkeys(data.student_ids))
        students = {
            s.id: s for s in (await self.db.execute(
                select(Student).where(Student.school_code == school_code, Student.id.in_(student_ids))
            )).scalars().all()
        }
        missing = [str(sid) for sid in student_ids if sid not in students]
        if missing:
            raise NotFoundError("Students not found", details={"student_ids": missing})

        existing = {
            a.student_id: a for a in (await self.db.execute(
                select(TransportAssignment).where(TransportAssignment.student_id.in_(student_ids))
            )).unique().scalars().all()
        }
        current = await self.db.scalar(
            select(func.count(TransportAssignment.id)).where(TransportAssignment.vehicle_id == vehicle.id)
        ) or 0
        incoming = sum(
            1 for sid in student_ids
            if sid not in existing or existing[sid].vehicle_id != vehicle.id
        )
        if current + incoming > vehicle.seats:
            raise BadRequestError(
                "Vehicle capacity exceeded",
                details={"seats": vehicle.seats, "assigned": current, "requested": incoming},
            )

        async with transaction(self.db):
            for sid in student_ids:
                assignment = existing.get(sid)
                if assignment is None:
                    assignment = TransportAssignment(school_code=school_code, student_id=sid)
                    self.db.add(assignment)
                assignment.vehicle_id = vehicle.id
                assignment.route_id = data.route_id
                assignment.pickup_stop = data.pickup_stop
                students[sid].transport_type = SCHOOL_BUS

        logger.info(f"{school_code}: {len(student_ids)} students assigned to {vehicle.vehicle_number}")
        return {
            "vehicle_id": vehicle.id,
            "assigned": len(student_ids),
            "occupied_seats": current + incoming,
            "seats": vehicle.seats,
        }

    async def unassign_student(self, school_code: str, student_id: uuid.UUID) -> None:
        assignment = (await self.db.execute(
            select(TransportAssignment).where(
                TransportAssignment.school_code == school_code,
                TransportAssignment.student_id == student_id,
            )
        )).unique().scalar_one_or_none()
        if assignment is None:
            raise NotFoundError("Student has no transport assignment")

        student = (await self.db.execute(
            select(Student).where(Student.id == student_id, Student.school_code == school_code)
        )).scalar_one_or_none()
        async with transaction(self.db):
            await self.db.delete(assignment)
            if student is not None and student.transport_type == SCHOOL_BUS:
                student.transport_type = None

    async def list_assignments(self, school_code: str, vehicle_id: Optional[uuid.UUID] = None,
                               route_id: Optional[uuid.UUID] = None) -> List[Dict[str, Any]]:
        query = (
            select(TransportAssignment, Student)
            .join(Student, Student.id == TransportAssignment.student_id)
            .where(TransportAssignment.school_code == school_code)
        )
        if vehicle_id:
            query = query.where(TransportAssignment.vehicle_id == vehicle_id)
        if route_id:
            query = query.where(TransportAssignment.route_id == route_id)
        rows = (await self.db.execute(query.order_by(Student.class_name, Student.first_name))).unique().all()
        return [
            {
                "id": assignment.id,
                "student_id": student.id,
                "admission_no": student.admission_no,
                "student_name": student.full_name,
                "class_name": student.class_name,
                "section": student.section,
                "vehicle_id": assignment.vehicle_id,
                "vehicle_number": assignment.vehicle.vehicle_number if assignment.vehicle else None,
                "route_id": assignment.route_id,
                "route_name": assignment.route.route_name if assignment.route else None,
                "pickup_stop": assignment.pickup_stop,
            }
            for assignment, student in rows
        ]
