from sqlalchemy import Column, String, DateTime, Text, Uuid, UniqueConstraint
from .base import TenantModel


class GatePass(TenantModel):
    __tablename__ = "gate_passes"
    __table_args__ = (UniqueConstraint("school_code", "pass_number", name="uq_gate_pass_number"),)

    pass_number = Column(String(40), nullable=False)
    person_type = Column(String(20), nullable=False)
    person_id = Column(Uuid, nullable=True)
    person_name = Column(String(200), nullable=False)
    class_name = Column(String(60), nullable=True)
    reason = Column(Text, nullable=False)
    accompanied_by = Column(String(200), nullable=True)
    time_out = Column(DateTime, nullable=False)
    expected_return = Column(DateTime, nullable=True)
    time_in = Column(DateTime, nullable=True)
    issued_by = Column(String(100), nullable=True)
    status = Column(String(20), default="out", nullable=False)
