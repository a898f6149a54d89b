from typing import Literal, Optional
from datetime import date
from decimal import Decimal
import uuid

from pydantic import BaseModel, Field

from school_erp.schemas.common import SchoolScoped


class BookCreateRequest(SchoolScoped):
    title: str = Field(..., min_length=1, max_length=255)
    author: Optional[str] = None
    isbn: Optional[str] = None
    publisher: Optional[str] = None
    category: Optional[str] = None
    edition: Optional[str] = None
    copies: int = Field(1, ge=1, le=500)


class LibrarySettingsRequest(SchoolScoped):
    borrow_days: int = Field(14, ge=1)
    max_books_student: int = Field(3, ge=0)
    max_books_staff: int = Field(5, ge=0)
    late_fine_per_day: Decimal = Field(Decimal("0"), ge=0)
    late_fine_fixed: Decimal = Field(Decimal("0"), ge=0)


class IssueBookRequest(SchoolScoped):
    copy_id: Optional[uuid.UUID] = None
    accession_number: Optional[str] = None
    borrower_type: Literal["student", "staff"]
    borrower_id: uuid.UUID
    issue_date: Optional[date] = None
    remarks: Optional[str] = None


class ReturnBookRequest(BaseModel):
    return_date: Optional[date] = None
    fine_paid: bool = False
    copy_status: Literal["available", "damaged", "lost"] = "available"
    remarks: Optional[str] = None
