async def test_staff_ids_are_generated_in_sequence(client, admin_headers, teacher):
    first = await client.post("/api/staff", json={"full_name": "Dev Rao", "designation": "Clerk"}, headers=admin_headers)
    assert first.status_code == 201, first.text
    assert first.json()["data"]["staff_id"] == "STF001"

    second = await client.post("/api/staff", json={"full_name": "Lata Iyer"}, headers=admin_headers)
    assert second.json()["data"]["staff_id"] == "STF002"

    manual = await client.post("/api/staff", json={"staff_id": "stf010", "full_name": "Om Pal"}, headers=admin_headers)
    assert manual.json()["data"]["staff_id"] == "STF010"
    after_gap = await client.post("/api/staff", json={"full_name": "Sara Das"}, headers=admin_headers)
    assert after_gap.json()["data"]["staff_id"] == "STF011"


async def test_duplicate_staff_id_is_rejected(client, admin_headers, teacher):
    response = await client.post("/api/staff", json={"staff_id": "t001", "full_name": "Copy"}, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "Staff ID already exists"


async def test_class_with_active_students_cannot_be_deleted(client, db, admin_headers, student):
    created = await client.post("/api/classes", json={"class_name": "5", "section": "a"}, headers=admin_headers)
    assert created.status_code == 201, created.text
    class_id = created.json()["data"]["id"]
    assert created.json()["data"]["section"] == "A"

    refused = await client.delete(f"/api/classes/{class_id}", headers=admin_headers)
    assert refused.status_code == 400
    assert refused.json()["details"] == {"active_students": 1}

    student.status = "transferred"
    await db.commit()

    deleted = await client.delete(f"/api/classes/{class_id}", headers=admin_headers)
    assert deleted.status_code == 200
    assert (await client.get(f"/api/classes/{class_id}", headers=admin_headers)).status_code == 404


async def test_dashboard_stats_read_live_counts_without_redis(client, db, admin_headers, student):
    first = await client.get("/api/dashboard/stats", headers=admin_headers)
    assert first.status_code == 200, first.text
    stats = first.json()["data"]
    assert stats["total_students"] == 1
    assert stats["fees_collected_this_month"] == 0

    student.status = "transferred"
    await db.commit()

    second = await client.get("/api/dashboard/stats", headers=admin_headers)
    assert second.json()["data"]["total_students"] == 0
