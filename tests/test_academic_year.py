from datetime import date
import uuid

import pytest
from sqlalchemy import select

from school_erp.core.database import AsyncSessionLocal
from school_erp.core.errors import BadRequestError, ConflictError, NotFoundError
from school_erp.models import AcademicYear, AcademicYearAuditLog, School, SchoolClass, Student, StudentEnrollment
from school_erp.services import academic_year_service
from school_erp.schemas.academic_year.requests import AcademicYearCreateRequest, ClosureRequest, PromotionRequest
from school_erp.services.academic_year_service import AcademicYearService


async def _two_years(db, school):
    service = AcademicYearService(db)
    await service.create_year(school.school_code, AcademicYearCreateRequest(
        year_name="2024-25", start_date=date(2024, 4, 1), end_date=date(2025, 3, 31)
    ))
    await service.create_year(school.school_code, AcademicYearCreateRequest(
        year_name="2025-26", start_date=date(2025, 4, 1), end_date=date(2026, 3, 31)
    ))
    return service


async def test_duplicate_year_conflicts(db, school):
    service = await _two_years(db, school)
    with pytest.raises(ConflictError):
        await service.create_year(school.school_code, AcademicYearCreateRequest(year_name="2024-25"))


async def test_closure_switches_current_year(db, school):
    service = await _two_years(db, school)
    result = await service.close_year(
        school, ClosureRequest(previous_year="2024-25", new_year="2025-26", confirm="close"), "admin:GHS001"
    )
    assert result["current_academic_year"] == "2025-26"

    years = {y.year_name: y for y in (await db.execute(select(AcademicYear))).scalars().all()}
    assert years["2024-25"].status == "closed"
    assert years["2025-26"].is_current
    assert not years["2024-25"].is_current
    assert school.current_academic_year == "2025-26"

    audit = (await db.execute(select(AcademicYearAuditLog))).scalars().all()
    assert [a.action for a in audit] == ["year_closure"]

    with pytest.raises(BadRequestError):
        await service.close_year(
            school, ClosureRequest(previous_year="2024-25", new_year="2025-26", confirm="CLOSE"), "admin:GHS001"
        )


async def test_closure_needs_confirmation_and_known_years(db, school):
    service = await _two_years(db, school)
    with pytest.raises(BadRequestError):
        await service.close_year(
            school, ClosureRequest(previous_year="2024-25", new_year="2025-26", confirm="yes"), "admin"
        )
    with pytest.raises(NotFoundError):
        await service.close_year(
            school, ClosureRequest(previous_year="2024-25", new_year="2030-31", confirm="CLOSE"), "admin"
        )


async def test_promotion_moves_students_and_records_enrollments(db, school, student):
    service = AcademicYearService(db)
    result = await service.execute_promotion(school, PromotionRequest(
        from_year="2024-25",
        actions=[{"student_id": student.id, "action": "promote", "target_class": "6", "roll_number": "7"}],
    ), "admin:GHS001")
    assert result["to_year"] == "2025-26"
    assert result["enrollments_created"] == 1

    await db.refresh(student)
    assert student.class_name == "6"
    assert student.section == "A"
    assert student.academic_year == "2025-26"

    enrollment = (await db.execute(select(StudentEnrollment))).scalar_one()
    assert enrollment.status == "active"
    assert enrollment.class_name == "6"

    with pytest.raises(ConflictError):
        await service.execute_promotion(school, PromotionRequest(
            from_year="2024-25", actions=[{"student_id": student.id, "action": "repeat"}],
        ), "admin:GHS001")


async def test_left_school_marks_student_transferred(db, school, student):
    service = AcademicYearService(db)
    await service.execute_promotion(school, PromotionRequest(
        from_year="2024-25", to_year="2025-26",
        actions=[{"student_id": student.id, "action": "left_school"}],
    ), "admin:GHS001")
    await db.refresh(student)
    assert student.status == "transferred"
    assert student.academic_year == "2024-25"


async def test_promotion_without_valid_students_fails(db, school):
    with pytest.raises(BadRequestError):
        await AcademicYearService(db).execute_promotion(school, PromotionRequest(
            from_year="2024-25", actions=[{"student_id": uuid.uuid4(), "action": "promote"}],
        ), "admin:GHS001")


async def test_failed_closure_leaves_every_row_untouched(db, school, monkeypatch):
    service = await _two_years(db, school)
    original_year = school.current_academic_year

    def failing_audit_row(**kwargs):
        raise RuntimeError("audit insert failed")

    monkeypatch.setattr(academic_year_service, "AcademicYearAuditLog", failing_audit_row)
    with pytest.raises(RuntimeError):
        await service.close_year(
            school, ClosureRequest(previous_year="2024-25", new_year="2025-26", confirm="CLOSE"), "admin:GHS001"
        )

    async with AsyncSessionLocal() as fresh:
        years = {y.year_name: y for y in (await fresh.execute(select(AcademicYear))).scalars().all()}
        current = (await fresh.execute(
            select(School.current_academic_year).where(School.school_code == school.school_code)
        )).scalar_one()
        audit = (await fresh.execute(select(AcademicYearAuditLog))).scalars().all()
    assert years["2024-25"].status == "upcoming"
    assert not years["2025-26"].is_current
    assert years["2025-26"].status == "upcoming"
    assert current == original_year
    assert audit == []


async def test_years_only_on_classes_are_listed_as_active(client, db, admin_headers, school):
    db.add(SchoolClass(school_code=school.school_code, class_name="7", section="A", academic_year="2023-24"))
    await db.commit()

    created = await client.post("/api/academic-year-management/years", json={
        "year_name": "2024-25", "start_date": "2024-04-01", "end_date": "2025-03-31", "status": "active",
    }, headers=admin_headers)
    assert created.status_code == 201, created.text

    response = await client.get("/api/academic-year-management/years", headers=admin_headers)
    assert response.status_code == 200
    years = response.json()["data"]
    assert [y["year_name"] for y in years] == ["2024-25", "2023-24"]
    assert years[0]["status"] == "active"
    assert years[1] == {
        "id": "2023-24", "year_name": "2023-24", "start_date": None, "end_date": None,
        "status": "active", "is_current": False, "source": "classes",
    }


async def test_promotion_honours_per_student_target_year(db, school, student):
    sibling = Student(school_code=school.school_code, admission_no="A-101", first_name="Nila",
                      class_name="5", section="A", academic_year="2024-25", status="active")
    db.add(sibling)
    await db.commit()

    result = await AcademicYearService(db).execute_promotion(school, PromotionRequest(
        from_year="2024-25",
        actions=[
            {"student_id": student.id, "action": "repeat"},
            {"student_id": sibling.id, "action": "promote", "target_class": "6", "to_year": "2026-27"},
        ],
    ), "admin:GHS001")
    assert result["to_year"] == "2025-26"
    assert result["enrollments_created"] == 2

    enrollments = {e.student_id: e for e in (await db.execute(select(StudentEnrollment))).scalars().all()}
    assert enrollments[student.id].academic_year == "2025-26"
    assert enrollments[student.id].status == "active"
    assert enrollments[student.id].class_name == "5"
    assert enrollments[sibling.id].academic_year == "2026-27"
    assert enrollments[sibling.id].class_name == "6"

    await db.refresh(sibling)
    assert sibling.academic_year == "2026-27"
