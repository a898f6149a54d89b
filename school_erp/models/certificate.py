from sqlalchemy import Column, String, Boolean, DateTime, Text, JSON, ForeignKey, Uuid, UniqueConstraint
from sqlalchemy.orm import relationship
from .base import TenantModel


class CertificateTemplate(TenantModel):
    __tablename__ = "certificate_templates"

    name = Column(String(150), nullable=False)
    certificate_type = Column(String(20), default="student", nullable=False)
    content = Column(Text, nullable=True)
    fields = Column(JSON, default=list)
    is_active = Column(Boolean, default=True, nullable=False)


class IssuedCertificate(TenantModel):
    __tablename__ = "issued_certificates"
    __table_args__ = (UniqueConstraint("school_code", "certificate_number", name="uq_certificate_number"),)

    template_id = Column(Uuid, ForeignKey("certificate_templates.id", ondelete="SET NULL"), nullable=True, index=True)
    recipient_type = Column(String(20), nullable=False)
    recipient_id = Column(Uuid, nullable=True)
    recipient_name = Column(String(200), nullable=False)
    certificate_number = Column(String(60), nullable=False)
    verification_code = Column(String(32), unique=True, nullable=False)
    certificate_data = Column(JSON, default=dict)
    status = Column(String(20), default="ISSUED", nullable=False)
    issued_by = Column(String(100), nullable=True)
    issued_at = Column(DateTime, nullable=False)

    template = relationship("CertificateTemplate", lazy="joined")
