from school_erp.models import Student

BASE = "/api/examinations"


async def _setup(client, db, admin_headers, student):
    classmates = [
        Student(school_code=student.school_code, admission_no=f"A-10{i}", first_name=name,
                class_name="5", section="A", status="active")
        for i, name in enumerate(("Zoya", "Kabir", "Neel"), start=1)
    ]
    db.add_all(classmates)
    await db.commit()

    school_class = await client.post("/api/classes", json={"class_name": "5", "section": "A"}, headers=admin_headers)
    class_id = school_class.json()["data"]["id"]
    exam = await client.post(BASE, json={
        "name": "Half Yearly",
        "class_ids": [class_id],
        "subjects": [{"name": "Maths", "max_marks": "50"}],
    }, headers=admin_headers)
    assert exam.status_code == 201, exam.text
    return exam.json()["data"]["id"], class_id, classmates


async def test_results_rank_with_ties_and_absentees(client, db, admin_headers, student):
    exam_id, class_id, (zoya, kabir, neel) = await _setup(client, db, admin_headers, student)

    saved = await client.post(f"{BASE}/marks", json={
        "exam_id": exam_id,
        "class_id": class_id,
        "marks": [
            {"student_id": str(student.id), "subject": "Maths", "max_marks": "50", "marks_obtained": "45"},
            {"student_id": str(zoya.id), "subject": "Maths", "max_marks": "50", "marks_obtained": "45"},
            {"student_id": str(kabir.id), "subject": "Maths", "max_marks": "50", "marks_obtained": "30"},
            {"student_id": str(neel.id), "subject": "Maths", "max_marks": "50"},
        ],
    }, headers=admin_headers)
    assert saved.status_code == 200, saved.text
    assert saved.json()["data"]["created"] == 4

    results = await client.get(f"{BASE}/{exam_id}/results/{class_id}", headers=admin_headers)
    assert results.status_code == 200
    rows = {row["name"]: row for row in results.json()["data"]["results"]}
    assert rows["Ravi Kumar"]["rank"] == 1
    assert rows["Zoya"]["rank"] == 1
    assert rows["Kabir"]["rank"] == 3
    assert rows["Ravi Kumar"]["grade"] == "A2"
    assert rows["Neel"]["subjects"][0]["grade"] == "AB"
    assert rows["Neel"]["subjects"][0]["is_absent"] is True


async def test_marks_outside_range_fail_validation(client, db, admin_headers, student):
    exam_id, class_id, _ = await _setup(client, db, admin_headers, student)
    response = await client.post(f"{BASE}/marks", json={
        "exam_id": exam_id,
        "marks": [{"student_id": str(student.id), "subject": "Maths", "max_marks": "50", "marks_obtained": "60"}],
    }, headers=admin_headers)
    assert response.status_code == 400


async def test_approved_marks_are_locked(client, db, admin_headers, student):
    exam_id, class_id, _ = await _setup(client, db, admin_headers, student)
    entry = {"student_id": str(student.id), "subject": "Maths", "max_marks": "50", "marks_obtained": "20"}
    await client.post(f"{BASE}/marks", json={"exam_id": exam_id, "marks": [entry]}, headers=admin_headers)

    approved = await client.post(f"{BASE}/marks/approve", json={"exam_id": exam_id}, headers=admin_headers)
    assert approved.status_code == 200

    changed = await client.post(f"{BASE}/marks", json={
        "exam_id": exam_id, "marks": [{**entry, "marks_obtained": "25"}],
    }, headers=admin_headers)
    assert changed.status_code == 400


async def test_custom_grade_scale_applies(client, db, admin_headers, student):
    exam_id, class_id, _ = await _setup(client, db, admin_headers, student)
    for grade, low, high in (("P", 40, 100), ("F", 0, 39.99)):
        response = await client.post(f"{BASE}/grade-scales", json={
            "grade": grade, "min_percentage": str(low), "max_percentage": str(high),
        }, headers=admin_headers)
        assert response.status_code == 201

    await client.post(f"{BASE}/marks", json={"exam_id": exam_id, "marks": [
        {"student_id": str(student.id), "subject": "Maths", "max_marks": "50", "marks_obtained": "19"},
    ]}, headers=admin_headers)
    marks = await client.get(f"{BASE}/marks/student/{student.id}", headers=admin_headers)
    assert marks.json()["data"][0]["grade"] == "F"
