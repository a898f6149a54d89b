STUDENT = {
    "admission_no": "A-200",
    "first_name": "Meera",
    "last_name": "Shah",
    "class_name": "6",
    "section": "b",
    "parent_phone": "9876543210",
}


async def test_create_and_list_students(client, admin_headers):
    response = await client.post("/api/students", json=STUDENT, headers=admin_headers)
    assert response.status_code == 201
    created = response.json()["data"]
    assert created["section"] == "B"
    assert created["status"] == "active"

    listing = await client.get("/api/students", params={"class_name": "6"}, headers=admin_headers)
    assert listing.status_code == 200
    assert listing.json()["total"] == 1
    assert listing.json()["data"][0]["admission_no"] == "A-200"


async def test_duplicate_admission_number_is_rejected(client, admin_headers):
    assert (await client.post("/api/students", json=STUDENT, headers=admin_headers)).status_code == 201

    response = await client.post("/api/students", json={**STUDENT, "first_name": "Other"}, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "Admission number already exists"


async def test_blank_required_field_fails_validation(client, admin_headers):
    response = await client.post("/api/students", json={**STUDENT, "first_name": "  "}, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["details"]


async def test_update_student(client, admin_headers, student):
    response = await client.patch(
        f"/api/students/{student.id}", json={"roll_number": "12", "date_of_birth": "05/06/2014"}, headers=admin_headers
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["roll_number"] == "12"
    assert data["date_of_birth"] == "2014-06-05"


async def test_students_require_a_session(client, school):
    assert (await client.get("/api/students", params={"school_code": school.school_code})).status_code == 401


async def test_teacher_without_grants_is_denied(client, teacher_headers):
    response = await client.get("/api/students", headers=teacher_headers)
    assert response.status_code == 403


IMPORT_CSV = (
    b"Admission No,First Name,Class,Date of Birth\n"
    b"A-300,Tara,4,12/03/2015\n"
    b",Nobody,4,\n"
    b"A-100,Ravi,5,\n"
    b"A-301,Kiran,4,someday\n"
)


async def test_import_reports_errors_per_row(client, admin_headers, student):
    parsed = await client.post(
        "/api/students/parse", files={"file": ("students.csv", IMPORT_CSV, "text/csv")}, headers=admin_headers
    )
    assert parsed.status_code == 200, parsed.text
    assert parsed.json()["data"]["total"] == 4
    rows = parsed.json()["data"]["rows"]
    assert rows[0] == {"admission_no": "A-300", "first_name": "Tara", "class_name": "4", "date_of_birth": "12/03/2015"}

    checked = await client.post("/api/students/validate", json={"rows": rows}, headers=admin_headers)
    assert checked.status_code == 200
    result = checked.json()["data"]
    assert (result["total"], result["valid"], result["invalid"]) == (4, 1, 3)
    errors = {e["row"]: e["errors"] for e in result["errors"]}
    assert errors[2] == ["Admission No is required"]
    assert errors[3] == ["Admission number already exists: A-100"]
    assert errors[4] == ["Invalid Date of Birth: someday"]

    inserted = await client.post("/api/students/bulk", json={"rows": rows}, headers=admin_headers)
    assert inserted.status_code == 200
    assert inserted.json()["data"]["inserted"] == 1
    assert inserted.json()["data"]["skipped"] == 3

    listing = await client.get("/api/students", params={"class_name": "4"}, headers=admin_headers)
    imported = listing.json()["data"]
    assert [s["admission_no"] for s in imported] == ["A-300"]
    assert imported[0]["date_of_birth"] == "2015-03-12"


async def test_parse_rejects_unknown_file_types(client, admin_headers):
    response = await client.post(
        "/api/students/parse", files={"file": ("students.txt", b"hello", "text/plain")}, headers=admin_headers
    )
    assert response.status_code == 400
