import pytest

from school_erp.core.errors import NotFoundError, ValidationError
from school_erp.services.rbac_service import RBACService

VIEW_STUDENTS = {"sub_module_key": "student_directory", "category_key": "view", "view_access": True}


async def _grant_via_role(client, admin_headers, teacher):
    role = await client.post("/api/rbac/roles", json={"name": "Class Teacher"}, headers=admin_headers)
    assert role.status_code == 201, role.text
    role_id = role.json()["data"]["id"]

    grants = await client.put(
        f"/api/rbac/roles/{role_id}/permissions", json={"permissions": [VIEW_STUDENTS]}, headers=admin_headers
    )
    assert grants.status_code == 200
    assert grants.json()["data"][0]["view_access"] is True

    assigned = await client.put(f"/api/staff/{teacher.id}/roles", json={"role_ids": [role_id]}, headers=admin_headers)
    assert assigned.status_code == 200
    return role_id


async def test_role_grant_opens_the_route(client, admin_headers, teacher, teacher_headers):
    assert (await client.get("/api/students", headers=teacher_headers)).status_code == 403

    await _grant_via_role(client, admin_headers, teacher)

    assert (await client.get("/api/students", headers=teacher_headers)).status_code == 200
    # view does not imply edit
    response = await client.post(
        "/api/students", json={"admission_no": "X1", "first_name": "A", "class_name": "1"}, headers=teacher_headers
    )
    assert response.status_code == 403


async def test_staff_override_beats_role_grant(client, admin_headers, teacher, teacher_headers):
    await _grant_via_role(client, admin_headers, teacher)

    override = await client.post(f"/api/staff/{teacher.id}/permissions", json={"permissions": [
        {**VIEW_STUDENTS, "view_access": False},
    ]}, headers=admin_headers)
    assert override.status_code == 200
    assert (await client.get("/api/students", headers=teacher_headers)).status_code == 403

    check = await client.get("/api/rbac/check", params={
        "staff_id": str(teacher.id), "sub_module_key": "student_directory",
    }, headers=admin_headers)
    assert check.json()["data"] == {"allowed": False, "source": "staff", "reason": "Permission not granted"}

    cleared = await client.delete(f"/api/staff/{teacher.id}/permissions/student_directory/view", headers=admin_headers)
    assert cleared.status_code == 200
    assert (await client.get("/api/students", headers=teacher_headers)).status_code == 200


async def test_override_can_grant_without_any_role(db, teacher):
    service = RBACService(db)
    assert (await service.check_staff_permission(teacher.id, "fee_collection", "view")).reason == "No roles assigned"

    await service.save_staff_permissions(teacher, [
        {"sub_module_key": "fee_collection", "category_key": "view", "view_access": True},
    ])
    decision = await service.check_staff_permission(teacher.id, "fee_collection", "view")
    assert decision.allowed
    assert decision.source == "staff"


async def test_unknown_keys_are_rejected(db, teacher):
    service = RBACService(db)
    with pytest.raises(NotFoundError):
        await service.check_staff_permission(teacher.id, "no_such_module", "view")
    with pytest.raises(ValidationError):
        await service.check_staff_permission(teacher.id, "fee_collection", "view", "delete")


async def test_principal_designation_bypasses_grants(client, db, teacher, teacher_headers):
    teacher.designation = "Principal"
    await db.commit()
    assert (await client.get("/api/students", headers=teacher_headers)).status_code == 200


async def test_module_catalogue_is_seeded(client, admin_headers):
    response = await client.get("/api/rbac/modules", headers=admin_headers)
    assert response.status_code == 200
    keys = {sub["sub_module_key"] for module in response.json()["data"] for sub in module["sub_modules"]}
    assert {"student_directory", "fee_collection", "gate_pass", "audit_logs"} <= keys


async def test_deactivated_role_drops_out_of_menu_and_permissions(client, admin_headers, teacher, teacher_headers):
    role_id = await _grant_via_role(client, admin_headers, teacher)
    menu = await client.get(f"/api/staff/{teacher.id}/menu", headers=admin_headers)
    assert "student_directory" in {s["sub_module_key"] for m in menu.json()["data"] for s in m["sub_modules"]}

    updated = await client.patch(f"/api/rbac/roles/{role_id}", json={"is_active": False}, headers=admin_headers)
    assert updated.status_code == 200
    assert updated.json()["data"]["is_active"] is False

    menu = await client.get(f"/api/staff/{teacher.id}/menu", headers=admin_headers)
    assert "student_directory" not in {s["sub_module_key"] for m in menu.json()["data"] for s in m["sub_modules"]}
    merged = await client.get(f"/api/staff/{teacher.id}/permissions", headers=admin_headers)
    assert "student_directory_view" not in merged.json()["data"]
    assert (await client.get("/api/students", headers=teacher_headers)).status_code == 403
