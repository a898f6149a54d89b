from typing import List, Optional
from datetime import date
import uuid

from pydantic import BaseModel

from school_erp.schemas.common import Numeric, ORMModel


class BookCopyResponse(ORMModel):
    id: uuid.UUID
    accession_number: str
    status: str


class BookResponse(ORMModel):
    id: uuid.UUID
    title: str
    author: Optional[str] = None
    isbn: Optional[str] = None
    publisher: Optional[str] = None
    category: Optional[str] = None
    edition: Optional[str] = None
    total_copies: int
    available_copies: int
    copies: List[BookCopyResponse] = []


class LibrarySettingsResponse(ORMModel):
    borrow_days: int
    max_books_student: int
    max_books_staff: int
    late_fine_per_day: Numeric
    late_fine_fixed: Numeric


class TransactionResponse(BaseModel):
    id: uuid.UUID
    book_id: uuid.UUID
    book_title: str
    accession_number: str
    borrower_type: str
    borrower_id: uuid.UUID
    borrower_name: Optional[str] = None
    issue_date: date
    due_date: date
    return_date: Optional[date] = None
    status: str
    fine_amount: Numeric
    fine_paid: bool
    is_overdue: bool
