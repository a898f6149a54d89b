from decimal import Decimal

from sqlalchemy import Column, String, Integer, Boolean, Numeric, JSON, ForeignKey, Uuid, UniqueConstraint
from sqlalchemy.orm import relationship
from .base import TenantModel


class TransportVehicle(TenantModel):
    __tablename__ = "transport_vehicles"
    __table_args__ = (UniqueConstraint("school_code", "vehicle_number", name="uq_vehicle_number"),)

    vehicle_number = Column(String(30), nullable=False)
    vehicle_type = Column(String(30), default="bus", nullable=False)
    seats = Column(Integer, nullable=False)
    driver_name = Column(String(150), nullable=True)
    driver_phone = Column(String(30), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)


class TransportRoute(TenantModel):
    __tablename__ = "transport_routes"
    __table_args__ = (UniqueConstraint("school_code", "route_name", name="uq_route_name"),)

    route_name = Column(String(100), nullable=False)
    vehicle_id = Column(Uuid, ForeignKey("transport_vehicles.id", ondelete="SET NULL"), nullable=True)
    stops = Column(JSON, default=list)
    monthly_fee = Column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    vehicle = relationship("TransportVehicle", lazy="joined")


class TransportAssignment(TenantModel):
    __tablename__ = "transport_assignments"
    __table_args__ = (UniqueConstraint("student_id", name="uq_transport_student"),)

    student_id = Column(Uuid, ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    vehicle_id = Column(Uuid, ForeignKey("transport_vehicles.id", ondelete="CASCADE"), nullable=False, index=True)
    route_id = Column(Uuid, ForeignKey("transport_routes.id", ondelete="SET NULL"), nullable=True)
    pickup_stop = Column(String(150), nullable=True)

    vehicle = relationship("TransportVehicle", lazy="joined")
    route = relationship("TransportRoute", lazy="joined")
