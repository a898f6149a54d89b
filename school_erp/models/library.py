from decimal import Decimal

from sqlalchemy import Column, String, Integer, Date, Boolean, Numeric, ForeignKey, Uuid, UniqueConstraint
from sqlalchemy.orm import relationship
from .base import TenantModel


class LibraryBook(TenantModel):
    __tablename__ = "library_books"

    title = Column(String(255), nullable=False)
    author = Column(String(200), nullable=True)
    isbn = Column(String(30), nullable=True)
    publisher = Column(String(200), nullable=True)
    category = Column(String(100), nullable=True)
    edition = Column(String(50), nullable=True)

    copies = relationship("LibraryBookCopy", back_populates="book", cascade="all, delete-orphan", lazy="selectin")

    @property
    def total_copies(self) -> int:
        return len(self.copies)

    @property
    def available_copies(self) -> int:
        return sum(1 for copy in self.copies if copy.status == "available")


class LibraryBookCopy(TenantModel):
    __tablename__ = "library_book_copies"
    __table_args__ = (UniqueConstraint("school_code", "accession_number", name="uq_book_copy_accession"),)

    book_id = Column(Uuid, ForeignKey("library_books.id", ondelete="CASCADE"), nullable=False, index=True)
    accession_number = Column(String(50), nullable=False)
    status = Column(String(20), default="available", nullable=False)

    book = relationship("LibraryBook", back_populates="copies")


class LibraryTransaction(TenantModel):
    __tablename__ = "library_transactions"

    copy_id = Column(Uuid, ForeignKey("library_book_copies.id", ondelete="CASCADE"), nullable=False, index=True)
    book_id = Column(Uuid, ForeignKey("library_books.id", ondelete="CASCADE"), nullable=False, index=True)
    borrower_type = Column(String(20), nullable=False)
    borrower_id = Column(Uuid, nullable=False, index=True)
    issue_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    return_date = Column(Date, nullable=True)
    status = Column(String(20), default="issued", nullable=False)
    fine_amount = Column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    fine_paid = Column(Boolean, default=False, nullable=False)
    remarks = Column(String(255), nullable=True)

    copy = relationship("LibraryBookCopy", lazy="joined")
    book = relationship("LibraryBook", lazy="joined")


class LibrarySettings(TenantModel):
    __tablename__ = "library_settings"
    __table_args__ = (UniqueConstraint("school_code", name="uq_library_settings_school"),)

    borrow_days = Column(Integer, default=14, nullable=False)
    max_books_student = Column(Integer, default=3, nullable=False)
    max_books_staff = Column(Integer, default=5, nullable=False)
    late_fine_per_day = Column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    late_fine_fixed = Column(Numeric(10, 2), default=Decimal("0"), nullable=False)
