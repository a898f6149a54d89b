from datetime import date

from school_erp.utils.dates import today

BASE = "/api/v2/fees"


async def _activated_structure(client, headers, **overrides):
    head = await client.post(f"{BASE}/fee-heads", json={"name": "Tuition"}, headers=headers)
    assert head.status_code == 201, head.text
    body = {
        "name": "Class 5 Monthly",
        "class_name": "5",
        "frequency": "monthly",
        "start_month": 4,
        "end_month": 3,
        "payment_due_day": 10,
        "items": [{"fee_head_id": head.json()["data"]["id"], "amount": "1500"}],
    }
    body.update(overrides)
    structure = await client.post(f"{BASE}/fee-structures", json=body, headers=headers)
    assert structure.status_code == 201, structure.text
    structure_id = structure.json()["data"]["id"]
    assert structure.json()["data"]["is_active"] is False

    activated = await client.post(f"{BASE}/fee-structures/{structure_id}/activate", headers=headers)
    assert activated.json()["data"]["is_active"] is True
    return structure_id


async def test_inactive_structure_cannot_generate(client, admin_headers, student):
    head = await client.post(f"{BASE}/fee-heads", json={"name": "Tuition"}, headers=admin_headers)
    structure = await client.post(f"{BASE}/fee-structures", json={
        "name": "Draft", "class_name": "5",
        "items": [{"fee_head_id": head.json()["data"]["id"], "amount": "100"}],
    }, headers=admin_headers)
    response = await client.post(
        f"{BASE}/fee-structures/{structure.json()['data']['id']}/generate-fees", headers=admin_headers
    )
    assert response.status_code == 400


async def test_generate_fees_once_per_period(client, admin_headers, student):
    structure_id = await _activated_structure(client, admin_headers)

    first = await client.post(f"{BASE}/fee-structures/{structure_id}/generate-fees", headers=admin_headers)
    assert first.status_code == 200
    assert first.json()["data"]["students_matched"] == 1
    assert first.json()["data"]["fees_created"] == 12

    again = await client.post(f"{BASE}/fee-structures/{structure_id}/generate-fees", headers=admin_headers)
    assert again.json()["data"]["fees_created"] == 0
    assert again.json()["data"]["fees_skipped"] == 12

    fees = await client.get(f"{BASE}/students/{student.id}/fees", headers=admin_headers)
    assert len(fees.json()["data"]) == 12
    assert all(fee["base_amount"] == 1500 for fee in fees.json()["data"])


async def test_payment_allocates_and_issues_receipt(client, admin_headers, student):
    structure_id = await _activated_structure(client, admin_headers, frequency="yearly")
    await client.post(f"{BASE}/fee-structures/{structure_id}/generate-fees", headers=admin_headers)
    fee = (await client.get(f"{BASE}/students/{student.id}/fees", headers=admin_headers)).json()["data"][0]

    response = await client.post(f"{BASE}/payments", json={
        "student_id": str(student.id),
        "amount": "500",
        "payment_mode": "cash",
        "allocations": [{"student_fee_id": fee["id"], "amount": "500"}],
    }, headers=admin_headers)
    assert response.status_code == 201, response.text
    receipt = response.json()["data"]["receipt"]
    assert receipt["receipt_no"].startswith("GHS001/REC/")
    assert receipt["receipt_no"].endswith("/00001")

    fee = (await client.get(f"{BASE}/students/{student.id}/fees", headers=admin_headers)).json()["data"][0]
    assert fee["paid_amount"] == 500
    assert fee["balance_due"] == 1000


async def test_allocations_must_match_payment_amount(client, admin_headers, student):
    structure_id = await _activated_structure(client, admin_headers, frequency="yearly")
    await client.post(f"{BASE}/fee-structures/{structure_id}/generate-fees", headers=admin_headers)
    fee = (await client.get(f"{BASE}/students/{student.id}/fees", headers=admin_headers)).json()["data"][0]

    mismatch = await client.post(f"{BASE}/payments", json={
        "student_id": str(student.id),
        "amount": "500",
        "payment_mode": "cash",
        "allocations": [{"student_fee_id": fee["id"], "amount": "400"}],
    }, headers=admin_headers)
    assert mismatch.status_code == 400

    overpay = await client.post(f"{BASE}/payments", json={
        "student_id": str(student.id),
        "amount": "2000",
        "payment_mode": "cash",
        "allocations": [{"student_fee_id": fee["id"], "amount": "2000"}],
    }, headers=admin_headers)
    assert overpay.status_code == 400
    assert overpay.json()["details"]["balance_due"] == 1500


async def test_reversal_restores_balance(client, admin_headers, student):
    structure_id = await _activated_structure(client, admin_headers, frequency="yearly")
    await client.post(f"{BASE}/fee-structures/{structure_id}/generate-fees", headers=admin_headers)
    fee = (await client.get(f"{BASE}/students/{student.id}/fees", headers=admin_headers)).json()["data"][0]
    payment = await client.post(f"{BASE}/payments", json={
        "student_id": str(student.id),
        "amount": "1500",
        "payment_mode": "upi",
        "allocations": [{"student_fee_id": fee["id"], "amount": "1500"}],
    }, headers=admin_headers)
    payment_id = payment.json()["data"]["payment"]["id"]

    reversed_ = await client.post(
        f"{BASE}/payments/{payment_id}/reverse", json={"reason": "cheque bounced"}, headers=admin_headers
    )
    assert reversed_.status_code == 200
    assert reversed_.json()["data"]["status"] == "reversed"

    fee = (await client.get(f"{BASE}/students/{student.id}/fees", headers=admin_headers)).json()["data"][0]
    assert fee["paid_amount"] == 0


async def test_per_day_late_fee_is_returned_as_numbers(client, admin_headers, student):
    structure_id = await _activated_structure(
        client, admin_headers, frequency="yearly", academic_year="2020-21",
        late_fee_type="per_day", late_fee_value="10", grace_period_days=5,
    )
    generated = await client.post(f"{BASE}/fee-structures/{structure_id}/generate-fees", headers=admin_headers)
    assert generated.json()["data"]["fees_created"] == 1
    assert generated.json()["data"]["warning"]

    fee = (await client.get(f"{BASE}/students/{student.id}/fees", headers=admin_headers)).json()["data"][0]
    days_late = (today() - date(2020, 4, 15)).days
    assert fee["due_date"] == "2020-04-10"
    assert fee["days_late"] == days_late
    assert isinstance(fee["late_fee"], float)
    assert fee["late_fee"] == 10 * days_late
    assert fee["total_due"] == 1500 + 10 * days_late
    assert fee["status"] == "overdue"

    statement = await client.get(f"{BASE}/students/{student.id}/statement", headers=admin_headers)
    totals = statement.json()["data"]["totals"]
    assert totals["billed"] == 1500
    assert totals["late_fees"] == 10 * days_late
