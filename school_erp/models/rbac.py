import uuid

from sqlalchemy import Column, String, Integer, Boolean, Text, ForeignKey, Uuid, UniqueConstraint
from sqlalchemy.orm import relationship
from .base import Base, TenantModel, TimestampMixin


class Module(TimestampMixin, Base):
    __tablename__ = "modules"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    module_key = Column(String(60), unique=True, nullable=False)
    name = Column(String(100), nullable=False)
    display_order = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    sub_modules = relationship("SubModule", back_populates="module", lazy="selectin", order_by="SubModule.display_order")


class SubModule(TimestampMixin, Base):
    __tablename__ = "sub_modules"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    module_id = Column(Uuid, ForeignKey("modules.id", ondelete="CASCADE"), nullable=False, index=True)
    sub_module_key = Column(String(60), unique=True, nullable=False)
    name = Column(String(100), nullable=False)
    route_path = Column(String(200), nullable=True)
    display_order = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    module = relationship("Module", back_populates="sub_modules")


class PermissionCategory(TimestampMixin, Base):
    __tablename__ = "permission_categories"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    category_key = Column(String(30), unique=True, nullable=False)
    name = Column(String(60), nullable=False)
    category_type = Column(String(30), default="view", nullable=False)
    display_order = Column(Integer, default=0, nullable=False)


class Role(TenantModel):
    __tablename__ = "roles"
    __table_args__ = (UniqueConstraint("school_code", "name", name="uq_role_name"),)

    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)


class RolePermission(TenantModel):
    __tablename__ = "role_permissions"
    __table_args__ = (
        UniqueConstraint("role_id", "sub_module_id", "category_id", name="uq_role_permission"),
    )

    role_id = Column(Uuid, ForeignKey("roles.id", ondelete="CASCADE"), nullable=False, index=True)
    sub_module_id = Column(Uuid, ForeignKey("sub_modules.id", ondelete="CASCADE"), nullable=False)
    category_id = Column(Uuid, ForeignKey("permission_categories.id", ondelete="CASCADE"), nullable=False)
    view_access = Column(Boolean, default=False, nullable=False)
    edit_access = Column(Boolean, default=False, nullable=False)


class StaffRole(TenantModel):
    __tablename__ = "staff_roles"
    __table_args__ = (UniqueConstraint("staff_id", "role_id", name="uq_staff_role"),)

    staff_id = Column(Uuid, ForeignKey("staff.id", ondelete="CASCADE"), nullable=False, index=True)
    role_id = Column(Uuid, ForeignKey("roles.id", ondelete="CASCADE"), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    assigned_by = Column(String(100), nullable=True)

    role = relationship("Role", lazy="joined")


class StaffPermission(TenantModel):
    """Individual override; when present it decides the check for its sub-module and category."""
    __tablename__ = "staff_permissions"
    __table_args__ = (
        UniqueConstraint("staff_id", "sub_module_id", "category_id", name="uq_staff_permission"),
    )

    staff_id = Column(Uuid, ForeignKey("staff.id", ondelete="CASCADE"), nullable=False, index=True)
    sub_module_id = Column(Uuid, ForeignKey("sub_modules.id", ondelete="CASCADE"), nullable=False)
    category_id = Column(Uuid, ForeignKey("permission_categories.id", ondelete="CASCADE"), nullable=False)
    view_access = Column(Boolean, default=False, nullable=False)
    edit_access = Column(Boolean, default=False, nullable=False)
    assigned_by = Column(String(100), nullable=True)
