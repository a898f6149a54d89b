from sqlalchemy import Column, String, Integer, ForeignKey, Uuid, UniqueConstraint
from sqlalchemy.orm import relationship
from .base import TenantModel


class SchoolClass(TenantModel):
    __tablename__ = "classes"
    __table_args__ = (
        UniqueConstraint("school_code", "class", "section", "academic_year", name="uq_class_section_year"),
    )

    class_name = Column("class", String(50), nullable=False)
    section = Column(String(20), nullable=True)
    academic_year = Column(String(20), nullable=True)
    class_teacher_id = Column(Uuid, ForeignKey("staff.id", ondelete="SET NULL"), nullable=True)
    class_teacher_staff_id = Column(String(30), nullable=True)
    capacity = Column(Integer, nullable=True)
    room_number = Column(String(30), nullable=True)

    class_teacher = relationship("Staff", lazy="joined")

    @property
    def label(self) -> str:
        return f"{self.class_name}-{self.section}" if self.section else self.class_name
