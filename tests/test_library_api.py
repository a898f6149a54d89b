from datetime import timedelta

from school_erp.utils.dates import today

BASE = "/api/library"


async def test_fine_settings_are_exclusive(client, admin_headers):
    response = await client.put(f"{BASE}/settings", json={
        "late_fine_per_day": "2", "late_fine_fixed": "10",
    }, headers=admin_headers)
    assert response.status_code == 400


async def test_defaults_until_settings_are_saved(client, admin_headers):
    response = await client.get(f"{BASE}/settings", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["data"]["borrow_days"] == 14


async def test_copies_get_sequential_accession_numbers(client, admin_headers):
    first = await client.post(f"{BASE}/books", json={"title": "Wings of Fire", "copies": 2}, headers=admin_headers)
    second = await client.post(f"{BASE}/books", json={"title": "Godan"}, headers=admin_headers)
    assert first.status_code == 201
    numbers = sorted(c["accession_number"] for c in first.json()["data"]["copies"])
    assert numbers == ["ACC-1", "ACC-2"]
    assert second.json()["data"]["copies"][0]["accession_number"] == "ACC-3"
    assert first.json()["data"]["available_copies"] == 2


async def test_issue_limit_and_late_return_fine(client, admin_headers, student):
    await client.put(f"{BASE}/settings", json={
        "borrow_days": 7, "max_books_student": 1, "late_fine_per_day": "2",
    }, headers=admin_headers)
    await client.post(f"{BASE}/books", json={"title": "Malgudi Days", "copies": 2}, headers=admin_headers)

    issued = await client.post(f"{BASE}/issue", json={
        "accession_number": "acc-1",
        "borrower_type": "student",
        "borrower_id": str(student.id),
        "issue_date": (today() - timedelta(days=10)).isoformat(),
    }, headers=admin_headers)
    assert issued.status_code == 201, issued.text
    record = issued.json()["data"]
    assert record["status"] == "issued"
    assert record["accession_number"] == "ACC-1"

    again = await client.post(f"{BASE}/issue", json={
        "accession_number": "ACC-2", "borrower_type": "student", "borrower_id": str(student.id),
    }, headers=admin_headers)
    assert again.status_code == 400
    assert again.json()["details"] == {"issued": 1, "limit": 1}

    overdue = await client.get(f"{BASE}/transactions", params={"status": "overdue"}, headers=admin_headers)
    assert len(overdue.json()["data"]) == 1

    returned = await client.post(f"{BASE}/transactions/{record['id']}/return", json={}, headers=admin_headers)
    assert returned.status_code == 200
    assert returned.json()["data"]["status"] == "returned"
    assert returned.json()["data"]["fine_amount"] == 6


async def test_issued_copy_is_not_available(client, admin_headers, student, teacher):
    await client.post(f"{BASE}/books", json={"title": "Panchatantra"}, headers=admin_headers)
    await client.post(f"{BASE}/issue", json={
        "accession_number": "ACC-1", "borrower_type": "student", "borrower_id": str(student.id),
    }, headers=admin_headers)
    response = await client.post(f"{BASE}/issue", json={
        "accession_number": "ACC-1", "borrower_type": "staff", "borrower_id": str(teacher.id),
    }, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["details"] == {"status": "issued"}
