from typing import Any, Dict, Optional
import uuid

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import get_db
from school_erp.core.dependencies import CurrentSession, resolve_school
from school_erp.core.permissions import require_permission
from school_erp.models import LibraryTransaction
from school_erp.schemas.library.requests import (
    BookCreateRequest,
    IssueBookRequest,
    LibrarySettingsRequest,
    ReturnBookRequest,
)
from school_erp.schemas.library.responses import BookResponse, LibrarySettingsResponse, TransactionResponse
from school_erp.services.audit_service import record_audit
from school_erp.services.library_service import LibraryService
from school_erp.services.fee_calculator import money_value

router = APIRouter(prefix="/api/library", tags=["Library"])

CATALOGUE = "library_catalogue"
TRANSACTIONS = "library_transactions"


def get_library_service(db: AsyncSession = Depends(get_db)) -> LibraryService:
    return LibraryService(db)


def transaction_data(record: LibraryTransaction) -> Dict[str, Any]:
    return {
        "id": record.id,
        "book_id": record.book_id,
        "copy_id": record.copy_id,
        "accession_number": record.copy.accession_number if record.copy else None,
        "borrower_type": record.borrower_type,
        "borrower_id": record.borrower_id,
        "issue_date": record.issue_date,
        "due_date": record.due_date,
        "return_date": record.return_date,
        "status": record.status,
        "fine_amount": money_value(record.fine_amount),
        "fine_paid": record.fine_paid,
    }


@router.get("/settings")
async def get_settings(
    school_code: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(CATALOGUE)),
    db: AsyncSession = Depends(get_db),
    library_service: LibraryService = Depends(get_library_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    library_settings = await library_service.get_settings(school.school_code)
    return {"data": LibrarySettingsResponse.model_validate(library_settings).model_dump()}


@router.put("/settings")
async def save_settings(
    body: LibrarySettingsRequest,
    session: CurrentSession = Depends(require_permission(CATALOGUE, "edit")),
    db: AsyncSession = Depends(get_db),
    library_service: LibraryService = Depends(get_library_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, body.school_code, session)
    library_settings = await library_service.save_settings(school.school_code, body)
    return {"data": LibrarySettingsResponse.model_validate(library_settings).model_dump()}


@router.get("/books")
async def list_books(
    school_code: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(CATALOGUE)),
    db: AsyncSession = Depends(get_db),
    library_service: LibraryService = Depends(get_library_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    books = await library_service.list_books(school.school_code, search, category)
    return {"data": [BookResponse.model_validate(b).model_dump() for b in books]}


@router.post("/books", status_code=201)
async def add_book(
    body: BookCreateRequest,
    background_tasks: BackgroundTasks,
    session: CurrentSession = Depends(require_permission(CATALOGUE, "edit")),
    db: AsyncSession = Depends(get_db),
    library_service: LibraryService = Depends(get_library_service)
) -> Dict[str, Any]:
    """Add a title with its copies; each copy gets the next accession number"""
    school = await resolve_school(db, body.school_code, session)
    book = await library_service.add_book(school.school_code, body)
    background_tasks.add_task(
        record_audit, school.school_code, "create", "library_book", book.id, session.actor,
        {"title": book.title, "copies": body.copies},
    )
    return {"data": BookResponse.model_validate(book).model_dump()}


@router.get("/books/{book_id}")
async def get_book(
    book_id: uuid.UUID,
    school_code: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(CATALOGUE)),
    db: AsyncSession = Depends(get_db),
    library_service: LibraryService = Depends(get_library_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    book = await library_service.get_book(school.school_code, book_id)
    return {"data": BookResponse.model_validate(book).model_dump()}


@router.post("/issue", status_code=201)
async def issue_book(
    body: IssueBookRequest,
    session: CurrentSession = Depends(require_permission(TRANSACTIONS, "edit")),
    db: AsyncSession = Depends(get_db),
    library_service: LibraryService = Depends(get_library_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, body.school_code, session)
    record = await library_service.issue_book(school.school_code, body)
    return {"data": transaction_data(record)}


@router.post("/transactions/{transaction_id}/return")
async def return_book(
    transaction_id: uuid.UUID,
    body: ReturnBookRequest,
    school_code: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(TRANSACTIONS, "edit")),
    db: AsyncSession = Depends(get_db),
    library_service: LibraryService = Depends(get_library_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    record = await library_service.return_book(school.school_code, transaction_id, body)
    return {"data": transaction_data(record)}


@router.get("/transactions")
async def list_transactions(
    school_code: Optional[str] = Query(None),
    status: Optional[str] = Query(None, pattern="^(issued|returned|overdue)$"),
    borrower_type: Optional[str] = Query(None, pattern="^(student|staff)$"),
    borrower_id: Optional[uuid.UUID] = Query(None),
    session: CurrentSession = Depends(require_permission(TRANSACTIONS)),
    db: AsyncSession = Depends(get_db),
    library_service: LibraryService = Depends(get_library_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    items = await library_service.list_transactions(school.school_code, status, borrower_type, borrower_id)
    return {
        "data": [
            {**item, **TransactionResponse(**item, is_overdue=item["status"] == "overdue").model_dump()}
            for item in items
        ]
    }


@router.get("/stats")
async def library_stats(
    school_code: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(CATALOGUE)),
    db: AsyncSession = Depends(get_db),
    library_service: LibraryService = Depends(get_library_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    return {"data": await library_service.stats(school.school_code)}
