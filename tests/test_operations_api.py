from datetime import timedelta

from school_erp.models import Student
from school_erp.utils.dates import today


async def test_gate_pass_lifecycle_and_pdf(client, admin_headers, student):
    created = await client.post("/api/gate-pass", json={
        "person_type": "student", "person_id": str(student.id), "reason": "Dentist appointment",
        "accompanied_by": "Father",
    }, headers=admin_headers)
    assert created.status_code == 201, created.text
    gate_pass = created.json()["data"]
    assert gate_pass["person_name"] == "Ravi Kumar"
    assert gate_pass["class_name"] == "5-A"
    assert gate_pass["pass_number"].endswith("-00001")
    assert gate_pass["status"] == "out"

    listed = await client.get("/api/gate-pass", params={"status": "out"}, headers=admin_headers)
    assert [p["id"] for p in listed.json()["data"]] == [gate_pass["id"]]

    returned = await client.post(f"/api/gate-pass/{gate_pass['id']}/return", headers=admin_headers)
    assert returned.json()["data"]["status"] == "returned"
    again = await client.post(f"/api/gate-pass/{gate_pass['id']}/return", headers=admin_headers)
    assert again.status_code == 400

    pdf = await client.get(f"/api/gate-pass/{gate_pass['id']}/pdf", headers=admin_headers)
    assert pdf.status_code == 200
    assert pdf.headers["content-type"] == "application/pdf"
    assert pdf.content.startswith(b"%PDF")


async def test_visitor_pass_needs_a_name(client, admin_headers):
    response = await client.post("/api/gate-pass", json={
        "person_type": "visitor", "reason": "Meeting",
    }, headers=admin_headers)
    assert response.status_code == 400


async def test_issued_certificate_can_be_verified(client, admin_headers, student):
    template = await client.post("/api/certificates/templates", json={
        "name": "Bonafide", "content": "This is to certify that {name}", "fields": ["class"],
    }, headers=admin_headers)
    assert template.status_code == 201, template.text

    issued = await client.post("/api/certificates/generate", json={
        "template_id": template.json()["data"]["id"],
        "recipient_id": str(student.id),
        "data": {"class": "5"},
    }, headers=admin_headers)
    assert issued.status_code == 201, issued.text
    certificate = issued.json()["data"]
    assert certificate["recipient_name"] == "Ravi Kumar"
    assert certificate["certificate_number"] == f"CERT-{today().year}-00001"
    assert certificate["certificate_data"]["template_name"] == "Bonafide"

    verified = await client.get(f"/api/certificates/verify/{certificate['verification_code'].lower()}")
    assert verified.status_code == 200
    assert verified.json()["data"]["valid"] is True
    assert verified.json()["data"]["certificate_number"] == certificate["certificate_number"]

    unknown = await client.get("/api/certificates/verify/NOPE0000")
    assert unknown.status_code == 404


async def test_bulk_certificates_report_bad_rows(client, admin_headers):
    template = await client.post("/api/certificates/templates", json={
        "name": "Sports Day", "fields": ["event"],
    }, headers=admin_headers)
    result = await client.post("/api/certificates/bulk-generate", json={
        "template_id": template.json()["data"]["id"],
        "rows": [{"name": "Meera", "event": "Relay"}, {"name": "", "event": "Long jump"}],
    }, headers=admin_headers)
    assert result.status_code == 200, result.text
    data = result.json()["data"]
    assert data["issued"] == 1
    assert data["failed"] == 1
    assert data["errors"][0]["row"] == 2


async def test_vehicle_capacity_is_enforced(client, db, admin_headers, student):
    classmate = Student(school_code=student.school_code, admission_no="A-200", first_name="Isha",
                        class_name="5", section="A", status="active")
    db.add(classmate)
    await db.commit()

    vehicle = await client.post("/api/transport/vehicles", json={
        "vehicle_number": "KA-01-1234", "seats": 1,
    }, headers=admin_headers)
    assert vehicle.status_code == 201, vehicle.text
    vehicle_id = vehicle.json()["data"]["id"]

    full = await client.post("/api/transport/assignments", json={
        "vehicle_id": vehicle_id, "student_ids": [str(student.id), str(classmate.id)],
    }, headers=admin_headers)
    assert full.status_code == 400
    assert full.json()["details"] == {"seats": 1, "assigned": 0, "requested": 2}

    ok = await client.post("/api/transport/assignments", json={
        "vehicle_id": vehicle_id, "student_ids": [str(student.id)], "pickup_stop": "Market",
    }, headers=admin_headers)
    assert ok.status_code == 200, ok.text
    assert ok.json()["data"]["occupied_seats"] == 1

    # moving a student's stop on the same vehicle takes no extra seat
    same = await client.post("/api/transport/assignments", json={
        "vehicle_id": vehicle_id, "student_ids": [str(student.id)], "pickup_stop": "Temple",
    }, headers=admin_headers)
    assert same.status_code == 200


async def test_student_leave_request_and_decision(client, admin_headers, teacher_headers, student):
    leave_type = await client.post("/api/leave/types", json={
        "name": "Sick Leave", "max_days": 3, "applies_to": "student",
    }, headers=admin_headers)
    assert leave_type.status_code == 201, leave_type.text
    type_id = leave_type.json()["data"]["id"]

    too_long = await client.post("/api/leave/student-requests", json={
        "student_id": str(student.id), "leave_type_id": type_id,
        "start_date": today().isoformat(), "end_date": (today() + timedelta(days=5)).isoformat(),
        "reason": "Fever",
    }, headers=admin_headers)
    assert too_long.status_code == 400

    created = await client.post("/api/leave/student-requests", json={
        "student_id": str(student.id), "leave_type_id": type_id,
        "start_date": today().isoformat(), "end_date": (today() + timedelta(days=1)).isoformat(),
        "reason": "Fever",
    }, headers=admin_headers)
    assert created.status_code == 201, created.text
    request_id = created.json()["data"]["id"]
    assert created.json()["data"]["status"] == "pending"

    not_class_teacher = await client.post(
        f"/api/leave/student-requests/{request_id}/decision", json={"action": "approve"}, headers=teacher_headers
    )
    assert not_class_teacher.status_code == 403

    no_reason = await client.post(
        f"/api/leave/student-requests/{request_id}/decision", json={"action": "reject"}, headers=admin_headers
    )
    assert no_reason.status_code == 400

    approved = await client.post(
        f"/api/leave/student-requests/{request_id}/decision", json={"action": "approve"}, headers=admin_headers
    )
    assert approved.status_code == 200
    assert approved.json()["data"]["status"] == "approved"

    pending = await client.get("/api/leave/student-requests", params={"status": "pending"}, headers=admin_headers)
    assert pending.json()["data"] == []
