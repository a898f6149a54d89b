from school_erp.utils.dates import today


async def _class(client, admin_headers, teacher=None):
    body = {"class_name": "5", "section": "a"}
    if teacher is not None:
        body["class_teacher_id"] = str(teacher.id)
    response = await client.post("/api/classes", json=body, headers=admin_headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]["id"]


async def test_class_teacher_marks_attendance_once_per_day(client, admin_headers, teacher, teacher_headers, student):
    class_id = await _class(client, admin_headers, teacher)
    body = {
        "class_id": class_id,
        "attendance_date": today().isoformat(),
        "records": [{"student_id": str(student.id), "status": "Holiday"}],
    }

    response = await client.post("/api/attendance/mark", json=body, headers=teacher_headers)
    assert response.status_code == 200, response.text
    record = response.json()["data"][0]
    assert record["status"] == "leave"
    assert record["remarks"] == "Holiday"
    assert record["marked_by"] == "T001"

    again = await client.post("/api/attendance/mark", json=body, headers=teacher_headers)
    assert again.status_code == 400

    day = await client.get(
        f"/api/attendance/class/{class_id}", params={"date": today().isoformat()}, headers=admin_headers
    )
    assert day.status_code == 200
    assert day.json()["data"][0]["status"] == "leave"


async def test_other_teachers_cannot_mark_the_class(client, admin_headers, teacher_headers, student):
    class_id = await _class(client, admin_headers)
    response = await client.post("/api/attendance/mark", json={
        "class_id": class_id,
        "attendance_date": today().isoformat(),
        "records": [{"student_id": str(student.id), "status": "present"}],
    }, headers=teacher_headers)
    assert response.status_code == 403


async def test_students_outside_the_class_are_rejected(client, admin_headers, student):
    response = await client.post("/api/classes", json={"class_name": "9"}, headers=admin_headers)
    class_id = response.json()["data"]["id"]
    marked = await client.post("/api/attendance/mark", json={
        "class_id": class_id,
        "attendance_date": today().isoformat(),
        "records": [{"student_id": str(student.id), "status": "absent"}],
    }, headers=admin_headers)
    assert marked.status_code == 400
    assert marked.json()["details"]["student_ids"] == [str(student.id)]
