"""Module / sub-module catalogue that RBAC grants refer to."""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.models import Module, SubModule, PermissionCategory

logger = logging.getLogger(__name__)

PERMISSION_CATEGORIES = [
    ("view", "View", "view", 1),
    ("edit", "Edit", "view", 2),
]

# module_key, name, [(sub_module_key, name, route_path)]
MODULE_CATALOGUE = [
    ("students", "Students", [
        ("student_directory", "Student Directory", "/students"),
        ("student_attendance", "Student Attendance", "/attendance/students"),
        ("student_import", "Bulk Import", "/students/import"),
    ]),
    ("staff", "Staff", [
        ("staff_directory", "Staff Directory", "/staff"),
        ("staff_attendance", "Staff Attendance", "/attendance/staff"),
    ]),
    ("academics", "Academics", [
        ("class_management", "Classes", "/classes"),
        ("academic_year_management", "Academic Years", "/academic-year"),
    ]),
    ("fees", "Fees", [
        ("fee_configuration", "Fee Configuration", "/fees/configuration"),
        ("fee_collection", "Fee Collection", "/fees/collection"),
        ("fee_reports", "Fee Reports", "/fees/reports"),
    ]),
    ("examinations", "Examinations", [
        ("exam_management", "Exams", "/examinations"),
        ("marks_entry", "Marks Entry", "/examinations/marks"),
    ]),
    ("library", "Library", [
        ("library_catalogue", "Catalogue", "/library/books"),
        ("library_transactions", "Issue & Return", "/library/transactions"),
    ]),
    ("transport", "Transport", [
        ("transport_management", "Transport", "/transport"),
    ]),
    ("certificates", "Certificates", [
        ("certificate_management", "Certificates", "/certificates"),
    ]),
    ("leave", "Leave", [
        ("leave_management", "Leave Requests", "/leave"),
    ]),
    ("front_office", "Front Office", [
        ("gate_pass", "Gate Pass", "/gate-pass"),
    ]),
    ("administration", "Administration", [
        ("role_management", "Roles & Permissions", "/settings/roles"),
        ("audit_logs", "Audit Logs", "/settings/audit"),
    ]),
]


async def seed_permission_catalogue(db: AsyncSession) -> None:
    """Insert any missing categories, modules and sub-modules. Safe to run repeatedly."""
    existing_categories = set((await db.execute(select(PermissionCategory.category_key))).scalars().all())
    for key, name, category_type, order in PERMISSION_CATEGORIES:
        if key not in existing_categories:
            db.add(PermissionCategory(category_key=key, name=name, category_type=category_type, display_order=order))

    modules = {m.module_key: m for m in (await db.execute(select(Module))).scalars().all()}
    existing_subs = set((await db.execute(select(SubModule.sub_module_key))).scalars().all())

    for module_order, (module_key, module_name, subs) in enumerate(MODULE_CATALOGUE, start=1):
        module = modules.get(module_key)
        if module is None:
            module = Module(module_key=module_key, name=module_name, display_order=module_order)
            db.add(module)
            await db.flush()
        for sub_order, (sub_key, sub_name, route_path) in enumerate(subs, start=1):
            if sub_key not in existing_subs:
                db.add(SubModule(
                    module_id=module.id,
                    sub_module_key=sub_key,
                    name=sub_name,
                    route_path=route_path,
                    display_order=sub_order,
                ))
    await db.commit()
    logger.info("Permission catalogue seeded")
