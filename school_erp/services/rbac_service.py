from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional
import uuid
import logging

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.errors import NotFoundError, ValidationError, ConflictError
from school_erp.models import (
    Module, SubModule, PermissionCategory, Role, RolePermission, StaffRole, StaffPermission, Staff
)

logger = logging.getLogger(__name__)

ACCESS_TYPES = ("view", "edit")


@dataclass
class PermissionDecision:
    allowed: bool
    source: Optional[str] = None
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _access_flag(row, required_access: str) -> bool:
    return bool(row.edit_access if required_access == "edit" else row.view_access)


class RBACService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _resolve_keys(self, sub_module_key: str, category_key: str):
        sub_module = (await self.db.execute(
            select(SubModule).where(SubModule.sub_module_key == sub_module_key)
        )).scalar_one_or_none()
        if sub_module is None:
            raise NotFoundError(f"Unknown sub-module: {sub_module_key}")
        category = (await self.db.execute(
            select(PermissionCategory).where(PermissionCategory.category_key == category_key)
        )).scalar_one_or_none()
        if category is None:
            raise NotFoundError(f"Unknown permission category: {category_key}")
        return sub_module, category

    async def check_staff_permission(
        self,
        staff_id: uuid.UUID,
        sub_module_key: str,
        category_key: str,
        required_access: str = "view"
    ) -> PermissionDecision:
        """
        Decide one permission for one staff member.

        An individual override row for the sub-module/category is final. Without one,
        any active role granting the access allows it. First matching source wins.
        """
        if required_access not in ACCESS_TYPES:
            raise ValidationError(f"Invalid access type: {required_access}")

        sub_module, category = await self._resolve_keys(sub_module_key, category_key)

        override = (await self.db.execute(
            select(StaffPermission).where(
                StaffPermission.staff_id == staff_id,
                StaffPermission.sub_module_id == sub_module.id,
                StaffPermission.category_id == category.id,
            )
        )).scalar_one_or_none()
        if override is not None:
            allowed = _access_flag(override, required_access)
            return PermissionDecision(
                allowed=allowed,
                source="staff",
                reason=None if allowed else "Permission not granted",
            )

        role_ids = (await self.db.execute(
            select(StaffRole.role_id)
            .join(Role, Role.id == StaffRole.role_id)
            .where(StaffRole.staff_id == staff_id, StaffRole.is_active.is_(True), Role.is_active.is_(True))
        )).scalars().all()
        if not role_ids:
            return PermissionDecision(allowed=False, reason="No roles assigned")

        grants = (await self.db.execute(
            select(RolePermission).where(
                RolePermission.role_id.in_(role_ids),
                RolePermission.sub_module_id == sub_module.id,
                RolePermission.category_id == category.id,
            )
        )).scalars().all()
        if any(_access_flag(grant, required_access) for grant in grants):
            return PermissionDecision(allowed=True, source="role")

        return PermissionDecision(allowed=False, reason="Permission not granted")

    async def get_staff_permissions(self, staff_id: uuid.UUID) -> Dict[str, Dict[str, Any]]:
        """Role grants merged with overrides, keyed `<sub_module_key>_<category_key>`."""
        merged: Dict[str, Dict[str, Any]] = {}

        role_rows = (await self.db.execute(
            select(RolePermission, SubModule.sub_module_key, PermissionCategory.category_key)
            .join(SubModule, SubModule.id == RolePermission.sub_module_id)
            .join(PermissionCategory, PermissionCategory.id == RolePermission.category_id)
            .join(StaffRole, StaffRole.role_id == RolePermission.role_id)
            .join(Role, Role.id == RolePermission.role_id)
            .where(StaffRole.staff_id == staff_id, StaffRole.is_active.is_(True), Role.is_active.is_(True))
        )).all()
        for grant, sub_key, cat_key in role_rows:
            key = f"{sub_key}_{cat_key}"
            entry = merged.setdefault(key, {
                "sub_module_key": sub_key,
                "category_key": cat_key,
                "view_access": False,
                "edit_access": False,
                "source": "role",
            })
            entry["view_access"] = entry["view_access"] or grant.view_access
            entry["edit_access"] = entry["edit_access"] or grant.edit_access

        override_rows = (await self.db.execute(
            select(StaffPermission, SubModule.sub_module_key, PermissionCategory.category_key)
            .join(SubModule, SubModule.id == StaffPermission.sub_module_id)
            .join(PermissionCategory, PermissionCategory.id == StaffPermission.category_id)
            .where(StaffPermission.staff_id == staff_id)
        )).all()
        for override, sub_key, cat_key in override_rows:
            merged[f"{sub_key}_{cat_key}"] = {
                "sub_module_key": sub_key,
                "category_key": cat_key,
                "view_access": override.view_access,
                "edit_access": override.edit_access,
                "source": "staff",
            }
        return merged

    async def save_staff_permissions(
        self,
        staff: Staff,
        entries: List[Dict[str, Any]],
        assigned_by: Optional[str] = None
    ) -> int:
        """Upsert override rows on (staff, sub-module, category)."""
        saved = 0
        for entry in entries:
            sub_module, category = await self._resolve_keys(entry["sub_module_key"], entry["category_key"])
            existing = (await self.db.execute(
                select(StaffPermission).where(
                    StaffPermission.staff_id == staff.id,
                    StaffPermission.sub_module_id == sub_module.id,
                    StaffPermission.category_id == category.id,
                )
            )).scalar_one_or_none()
            if existing is None:
                existing = StaffPermission(
                    school_code=staff.school_code,
                    staff_id=staff.id,
                    sub_module_id=sub_module.id,
                    category_id=category.id,
                )
                self.db.add(existing)
            existing.view_access = bool(entry.get("view_access"))
            existing.edit_access = bool(entry.get("edit_access"))
            existing.assigned_by = assigned_by
            saved += 1
        await self.db.commit()
        logger.info(f"Saved {saved} permission overrides for staff {staff.staff_id}")
        return saved

    async def clear_staff_permission(self, staff: Staff, sub_module_key: str, category_key: str) -> None:
        sub_module, category = await self._resolve_keys(sub_module_key, category_key)
        await self.db.execute(
            delete(StaffPermission).where(
                StaffPermission.staff_id == staff.id,
                StaffPermission.sub_module_id == sub_module.id,
                StaffPermission.category_id == category.id,
            )
        )
        await self.db.commit()

    # Roles

    async def list_roles(self, school_code: str) -> List[Role]:
        result = await self.db.execute(
            select(Role).where(Role.school_code == school_code).order_by(Role.name)
        )
        return list(result.scalars().all())

    async def get_role(self, school_code: str, role_id: uuid.UUID) -> Role:
        role = (await self.db.execute(
            select(Role).where(Role.id == role_id, Role.school_code == school_code)
        )).scalar_one_or_none()
        if role is None:
            raise NotFoundError("Role not found")
        return role

    async def create_role(self, school_code: str, name: str, description: Optional[str] = None) -> Role:
        name = name.strip()
        existing = (await self.db.execute(
            select(Role.id).where(Role.school_code == school_code, Role.name == name)
        )).scalar_one_or_none()
        if existing is not None:
            raise ConflictError("Role already exists")
        role = Role(school_code=school_code, name=name, description=description)
        self.db.add(role)
        await self.db.commit()
        return role

    async def update_role(self, school_code: str, role_id: uuid.UUID, changes: Dict[str, Any]) -> Role:
        role = await self.get_role(school_code, role_id)
        for field in ("name", "description", "is_active"):
            if field in changes and changes[field] is not None:
                setattr(role, field, changes[field])
        await self.db.commit()
        return role

    async def delete_role(self, school_code: str, role_id: uuid.UUID) -> None:
        role = await self.get_role(school_code, role_id)
        await self.db.delete(role)
        await self.db.commit()

    async def get_role_permissions(self, school_code: str, role_id: uuid.UUID) -> List[Dict[str, Any]]:
        await self.get_role(school_code, role_id)
        rows = (await self.db.execute(
            select(RolePermission, SubModule.sub_module_key, PermissionCategory.category_key)
            .join(SubModule, SubModule.id == RolePermission.sub_module_id)
            .join(PermissionCategory, PermissionCategory.id == RolePermission.category_id)
            .where(RolePermission.role_id == role_id)
        )).all()
        return [
            {
                "sub_module_key": sub_key,
                "category_key": cat_key,
                "view_access": grant.view_access,
                "edit_access": grant.edit_access,
            }
            for grant, sub_key, cat_key in rows
        ]

    async def set_role_permissions(
        self, school_code: str, role_id: uuid.UUID, entries: List[Dict[str, Any]]
    ) -> int:
        """Replace the role's whole permission matrix."""
        await self.get_role(school_code, role_id)
        await self.db.execute(delete(RolePermission).where(RolePermission.role_id == role_id))
        for entry in entries:
            sub_module, category = await self._resolve_keys(entry["sub_module_key"], entry["category_key"])
            self.db.add(RolePermission(
                school_code=school_code,
                role_id=role_id,
                sub_module_id=sub_module.id,
                category_id=category.id,
                view_access=bool(entry.get("view_access")),
                edit_access=bool(entry.get("edit_access")),
            ))
        await self.db.commit()
        return len(entries)

    async def get_staff_roles(self, staff: Staff) -> List[StaffRole]:
        result = await self.db.execute(select(StaffRole).where(StaffRole.staff_id == staff.id))
        return list(result.scalars().all())

    async def set_staff_roles(
        self, staff: Staff, role_ids: List[uuid.UUID], assigned_by: Optional[str] = None
    ) -> List[StaffRole]:
        """Make exactly `role_ids` the staff member's active roles."""
        roles = {r.id for r in await self.list_roles(staff.school_code)}
        unknown = [str(rid) for rid in role_ids if rid not in roles]
        if unknown:
            raise ValidationError("Unknown roles", details={"role_ids": unknown})

        current = {sr.role_id: sr for sr in await self.get_staff_roles(staff)}
        for role_id, staff_role in current.items():
            staff_role.is_active = role_id in role_ids
        for role_id in role_ids:
            if role_id not in current:
                self.db.add(StaffRole(
                    school_code=staff.school_code,
                    staff_id=staff.id,
                    role_id=role_id,
                    assigned_by=assigned_by,
                ))
        await self.db.commit()
        return await self.get_staff_roles(staff)

    # Catalogue and menu

    async def module_tree(self) -> List[Dict[str, Any]]:
        modules = (await self.db.execute(
            select(Module).where(Module.is_active.is_(True)).order_by(Module.display_order)
        )).scalars().all()
        return [
            {
                "module_key": module.module_key,
                "name": module.name,
                "sub_modules": [
                    {"sub_module_key": sub.sub_module_key, "name": sub.name, "route_path": sub.route_path}
                    for sub in module.sub_modules if sub.is_active
                ],
            }
            for module in modules
        ]

    async def staff_menu(self, staff: Staff) -> List[Dict[str, Any]]:
        """Modules and sub-modules the staff member can view. Principals see everything."""
        tree = await self.module_tree()
        if staff.is_admin_or_principal:
            return tree

        permissions = await self.get_staff_permissions(staff.id)
        visible = {
            p["sub_module_key"] for p in permissions.values()
            if p["view_access"] or p["edit_access"]
        }
        menu = []
        for module in tree:
            subs = [s for s in module["sub_modules"] if s["sub_module_key"] in visible]
            if subs:
                menu.append({**module, "sub_modules": subs})
        return menu
