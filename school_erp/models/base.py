import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import declarative_base, declared_attr

from school_erp.utils.dates import utcnow

Base = declarative_base()


class TimestampMixin:
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class TenantModel(TimestampMixin, Base):
    """
    Base for every row that belongs to one school.
    Rows are keyed by a UUID and scoped by the school's short code.
    """
    __abstract__ = True

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    @declared_attr
    def school_code(cls):
        return Column(String(20), ForeignKey("schools.school_code"), nullable=False, index=True)
