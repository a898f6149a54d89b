from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional
import re
import uuid
import logging

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import transaction
from school_erp.core.errors import BadRequestError, NotFoundError
from school_erp.models import LibraryBook, LibraryBookCopy, LibrarySettings, LibraryTransaction, Staff, Student
from school_erp.schemas.library.requests import (
    BookCreateRequest, IssueBookRequest, LibrarySettingsRequest, ReturnBookRequest,
)
from school_erp.services.fee_calculator import money_value, to_money
from school_erp.utils.dates import today

logger = logging.getLogger(__name__)

ACCESSION_PREFIX = "ACC-"
DEFAULT_SETTINGS = {
    "borrow_days": 14,
    "max_books_student": 3,
    "max_books_staff": 5,
    "late_fine_per_day": Decimal("0"),
    "late_fine_fixed": Decimal("0"),
}


def return_fine(due_date: date, returned_on: date, per_day, fixed) -> Decimal:
    """Fixed charge plus the per-day rate for every day past the due date"""
    days_overdue = (returned_on - due_date).days
    if days_overdue <= 0:
        return to_money(0)
    return to_money(to_money(fixed) + to_money(per_day) * days_overdue)


class LibraryService:
    def __init__(self, db: AsyncSession):
        self.db = db

    # Settings

    async def get_settings(self, school_code: str) -> LibrarySettings:
        """Stored settings, or an unsaved row carrying the defaults"""
        stored = (await self.db.execute(
            select(LibrarySettings).where(LibrarySettings.school_code == school_code)
        )).scalar_one_or_none()
        return stored or LibrarySettings(school_code=school_code, **DEFAULT_SETTINGS)

    async def save_settings(self, school_code: str, data: LibrarySettingsRequest) -> LibrarySettings:
        if data.late_fine_per_day > 0 and data.late_fine_fixed > 0:
            raise BadRequestError("Please set either per-day fine OR fixed fine, not both")

        stored = (await self.db.execute(
            select(LibrarySettings).where(LibrarySettings.school_code == school_code)
        )).scalar_one_or_none()
        if stored is None:
            stored = LibrarySettings(school_code=school_code)
            self.db.add(stored)
        for field in DEFAULT_SETTINGS:
            setattr(stored, field, getattr(data, field))
        await self.db.commit()
        return stored

    # Catalogue

    async def _next_accession(self, school_code: str) -> int:
        numbers = (await self.db.execute(
            select(LibraryBookCopy.accession_number).where(
                LibraryBookCopy.school_code == school_code,
                LibraryBookCopy.accession_number.like(f"{ACCESSION_PREFIX}%"),
            )
        )).scalars().all()
        highest = 0
        for number in numbers:
            match = re.fullmatch(rf"{ACCESSION_PREFIX}(\d+)", number)
            if match:
                highest = max(highest, int(match.group(1)))
        return highest + 1

    async def add_book(self, school_code: str, data: BookCreateRequest) -> LibraryBook:
        start = await self._next_accession(school_code)
        book = LibraryBook(
            school_code=school_code,
            **data.model_dump(exclude={"school_code", "copies"}),
        )
        book.copies = [
            LibraryBookCopy(school_code=school_code, accession_number=f"{ACCESSION_PREFIX}{start + i}")
            for i in range(data.copies)
        ]
        self.db.add(book)
        await self.db.commit()
        logger.info(f"{school_code}: added '{book.title}' with {data.copies} copies")
        return book

    async def list_books(self, school_code: str, search: Optional[str] = None,
                         category: Optional[str] = None) -> List[LibraryBook]:
        query = select(LibraryBook).where(LibraryBook.school_code == school_code)
        if search:
            pattern = f"%{search.strip().lower()}%"
            query = query.where(
                func.lower(LibraryBook.title).like(pattern) | func.lower(LibraryBook.author).like(pattern)
            )
        if category:
            query = query.where(LibraryBook.category == category)
        result = await self.db.execute(query.order_by(LibraryBook.title))
        return list(result.scalars().all())

    async def get_book(self, school_code: str, book_id: uuid.UUID) -> LibraryBook:
        book = (await self.db.execute(
            select(LibraryBook).where(LibraryBook.id == book_id, LibraryBook.school_code == school_code)
        )).scalar_one_or_none()
        if book is None:
            raise NotFoundError("Book not found")
        return book

    # Circulation

    async def _borrower(self, school_code: str, borrower_type: str, borrower_id: uuid.UUID):
        model = Student if borrower_type == "student" else Staff
        borrower = (await self.db.execute(
            select(model).where(model.id == borrower_id, model.school_code == school_code)
        )).scalar_one_or_none()
        if borrower is None:
            raise NotFoundError(f"{borrower_type.capitalize()} not found")
        return borrower

    async def _find_copy(self, school_code: str, data: IssueBookRequest) -> LibraryBookCopy:
        if data.copy_id is None and not data.accession_number:
            raise BadRequestError("copy_id or accession_number is required")
        query = select(LibraryBookCopy).where(LibraryBookCopy.school_code == school_code)
        if data.copy_id is not None:
            query = query.where(LibraryBookCopy.id == data.copy_id)
        else:
            query = query.where(LibraryBookCopy.accession_number == data.accession_number.strip().upper())
        copy = (await self.db.execute(query)).scalar_one_or_none()
        if copy is None:
            raise NotFoundError("Book copy not found")
        return copy

    async def issue_book(self, school_code: str, data: IssueBookRequest) -> LibraryTransaction:
        library_settings = await self.get_settings(school_code)
        await self._borrower(school_code, data.borrower_type, data.borrower_id)
        copy = await self._find_copy(school_code, data)
        if copy.status != "available":
            raise BadRequestError("Book copy is not available", details={"status": copy.status})

        limit = (
            library_settings.max_books_student if data.borrower_type == "student"
            else library_settings.max_books_staff
        )
        outstanding = await self.db.scalar(
            select(func.count(LibraryTransaction.id)).where(
                LibraryTransaction.school_code == school_code,
                LibraryTransaction.borrower_id == data.borrower_id,
                LibraryTransaction.status == "issued",
            )
        ) or 0
        if outstanding >= limit:
            raise BadRequestError(
                f"Borrowing limit reached ({limit} books)",
                details={"issued": outstanding, "limit": limit},
            )

        issue_date = data.issue_date or today()
        async with transaction(self.db):
            record = LibraryTransaction(
                school_code=school_code,
                copy=copy,
                book_id=copy.book_id,
                borrower_type=data.borrower_type,
                borrower_id=data.borrower_id,
                issue_date=issue_date,
                due_date=issue_date + timedelta(days=library_settings.borrow_days),
                status="issued",
                fine_amount=Decimal("0"),
                remarks=data.remarks,
            )
            self.db.add(record)
            copy.status = "issued"
        return record

    async def return_book(self, school_code: str, transaction_id: uuid.UUID,
                          data: ReturnBookRequest) -> LibraryTransaction:
        record = (await self.db.execute(
            select(LibraryTransaction).where(
                LibraryTransaction.id == transaction_id,
                LibraryTransaction.school_code == school_code,
            )
        )).scalar_one_or_none()
        if record is None:
            raise NotFoundError("Transaction not found")
        if record.status == "returned":
            raise BadRequestError("Book has already been returned")

        library_settings = await self.get_settings(school_code)
        returned_on = data.return_date or today()
        async with transaction(self.db):
            record.return_date = returned_on
            record.status = "returned"
            record.fine_amount = return_fine(
                record.due_date, returned_on,
                library_settings.late_fine_per_day, library_settings.late_fine_fixed,
            )
            record.fine_paid = data.fine_paid
            if data.remarks:
                record.remarks = data.remarks
            record.copy.status = data.copy_status
        return record

    async def list_transactions(
        self,
        school_code: str,
        status: Optional[str] = None,
        borrower_type: Optional[str] = None,
        borrower_id: Optional[uuid.UUID] = None
    ) -> List[Dict[str, Any]]:
        query = select(LibraryTransaction).where(LibraryTransaction.school_code == school_code)
        on = today()
        if status == "overdue":
            query = query.where(LibraryTransaction.status == "issued", LibraryTransaction.due_date < on)
        elif status:
            query = query.where(LibraryTransaction.status == status)
        if borrower_type:
            query = query.where(LibraryTransaction.borrower_type == borrower_type)
        if borrower_id:
            query = query.where(LibraryTransaction.borrower_id == borrower_id)
        records = (await self.db.execute(
            query.order_by(LibraryTransaction.issue_date.desc())
        )).unique().scalars().all()

        students = await self._names(Student, school_code, {r.borrower_id for r in records if r.borrower_type == "student"})
        staff = await self._names(Staff, school_code, {r.borrower_id for r in records if r.borrower_type == "staff"})

        items = []
        for r in records:
            borrower = (students if r.borrower_type == "student" else staff).get(r.borrower_id, {})
            items.append({
                "id": r.id,
                "book_id": r.book_id,
                "book_title": r.book.title if r.book else None,
                "accession_number": r.copy.accession_number if r.copy else None,
                "borrower_type": r.borrower_type,
                "borrower_id": r.borrower_id,
                "borrower_name": borrower.get("name"),
                "borrower_identifier": borrower.get("identifier"),
                "borrower_class": borrower.get("class"),
                "issue_date": r.issue_date,
                "due_date": r.due_date,
                "return_date": r.return_date,
                "status": "overdue" if r.status == "issued" and r.due_date < on else r.status,
                "fine_amount": money_value(r.fine_amount),
                "fine_paid": r.fine_paid,
            })
        return items

    async def _names(self, model, school_code: str, ids) -> Dict[uuid.UUID, Dict[str, Any]]:
        if not ids:
            return {}
        rows = (await self.db.execute(
            select(model).where(model.school_code == school_code, model.id.in_(ids))
        )).scalars().all()
        if model is Student:
            return {
                s.id: {"name": s.full_name, "identifier": s.admission_no,
                       "class": f"{s.class_name}-{s.section}" if s.section else s.class_name}
                for s in rows
            }
        return {s.id: {"name": s.full_name, "identifier": s.staff_id, "class": None} for s in rows}

    async def stats(self, school_code: str) -> Dict[str, Any]:
        on = today()
        books = await self.db.scalar(
            select(func.count(LibraryBook.id)).where(LibraryBook.school_code == school_code)
        ) or 0
        copy_rows = (await self.db.execute(
            select(LibraryBookCopy.status, func.count(LibraryBookCopy.id))
            .where(LibraryBookCopy.school_code == school_code)
            .group_by(LibraryBookCopy.status)
        )).all()
        copies = {status: total for status, total in copy_rows}
        overdue = await self.db.scalar(
            select(func.count(LibraryTransaction.id)).where(
                LibraryTransaction.school_code == school_code,
                LibraryTransaction.status == "issued",
                LibraryTransaction.due_date < on,
            )
        ) or 0
        fines = await self.db.scalar(
            select(func.coalesce(func.sum(LibraryTransaction.fine_amount), 0)).where(
                LibraryTransaction.school_code == school_code,
                LibraryTransaction.fine_paid.is_(False),
            )
        )
        return {
            "total_books": books,
            "total_copies": sum(copies.values()),
            "available_copies": copies.get("available", 0),
            "issued_copies": copies.get("issued", 0),
            "overdue": overdue,
            "unpaid_fines": money_value(fines),
        }
