import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

import database
from book import Book
from config import settings
from errors import DuplicateMemberError, InvalidStateError, LibraryError, NotFoundError, ValidationError
from library import Library
from loan import ActiveLoan, LoanRecord
from member import Member

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

_library: Optional[Library] = None


def get_library() -> Library:
    """Dependency returning the process-wide Library (overridable in tests)."""
    global _library
    if _library is None:
        _library = Library()
        logger.info(f"Library opened on {_library.store.__class__.__name__}")
    return _library


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        yield
    finally:
        global _library
        if _library is not None:
            _library.close()
            _library = None

app = FastAPI(title=f"{settings.app_name} API", version=settings.app_version, lifespan=lifespan)

# --- CORS ---
# The browser front end is served from a different origin during development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _http_error(exc: LibraryError) -> HTTPException:
    """Map a ledger error to the HTTP status the front end expects."""
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, InvalidStateError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=422, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


# --- Models ---
class BookModel(BaseModel):
    id: int
    title: str
    author: str
    genre: Optional[str] = None
    publisher: Optional[str] = None
    edition: Optional[str] = None
    year: Optional[int] = None
    isbn: Optional[str] = None
    barcode: Optional[str] = None
    total_copies: int
    available_copies: int


class BookCreateModel(BaseModel):
    title: str
    author: str
    total_copies: int = Field(1, ge=1, description="Copies owned; all start on the shelf")
    genre: Optional[str] = None
    publisher: Optional[str] = None
    edition: Optional[str] = None
    year: Optional[int] = None
    isbn: Optional[str] = None
    barcode: Optional[str] = None


class CopiesUpdateModel(BaseModel):
    total_copies: int = Field(..., ge=0)


class MemberModel(BaseModel):
    membership_id: str
    name: str
    cpf: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    kind: Optional[str] = None
    registered_at: Optional[str] = None


class MemberCreateModel(BaseModel):
    membership_id: str
    name: str
    cpf: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    kind: Optional[str] = None


class LoanCreateModel(BaseModel):
    book_id: int
    membership_id: str
    note: Optional[str] = None


class LoanModel(BaseModel):
    id: int
    book_id: int
    membership_id: str
    loan_date: datetime
    due_date: datetime
    return_date: Optional[datetime] = None
    status: str
    note: Optional[str] = None


class ActiveLoanModel(LoanModel):
    effective_status: str
    book_title: str


class DriftModel(BaseModel):
    book_id: int
    title: str
    total_copies: int
    available_copies: int
    expected_available_copies: int


def _loan_model(record: LoanRecord) -> LoanModel:
    return LoanModel(**record.to_dict())


def _active_loan_model(item: ActiveLoan) -> ActiveLoanModel:
    return ActiveLoanModel(
        **item.record.to_dict(),
        effective_status=item.effective_status.value,
        book_title=item.book_title or "Book removed",
    )


# --- Health ---
@app.get("/health")
def health(library: Library = Depends(get_library)):
    db_ok = True
    db_file = getattr(library.store, "db_file", None)
    if db_file:
        db_ok = database.ping(db_file)
    return {
        "status": "healthy" if db_ok else "degraded",
        "timestamp": datetime.utcnow().isoformat() + "Z",
        "db": db_ok,
        "loan_period_days": library.ledger.loan_period_days,
    }


# --- Books ---
@app.post("/books", response_model=BookModel, status_code=201)
def add_book(payload: BookCreateModel, library: Library = Depends(get_library)):
    try:
        book = library.add_book(Book(**payload.model_dump()))
    except LibraryError as e:
        raise _http_error(e)
    return BookModel(**book.to_dict())


@app.get("/books/{book_id}", response_model=BookModel)
def get_book(book_id: int, library: Library = Depends(get_library)):
    try:
        book = library.find_book(book_id)
    except LibraryError as e:
        raise _http_error(e)
    return BookModel(**book.to_dict())


@app.patch("/books/{book_id}/copies", response_model=BookModel)
def update_book_copies(book_id: int, payload: CopiesUpdateModel, library: Library = Depends(get_library)):
    try:
        book = library.set_total_copies(book_id, payload.total_copies)
    except LibraryError as e:
        raise _http_error(e)
    logger.info(f"Book {book_id} total copies set to {book.total_copies}")
    return BookModel(**book.to_dict())


# --- Members ---
@app.post("/members", response_model=MemberModel, status_code=201)
def register_member(payload: MemberCreateModel, library: Library = Depends(get_library)):
    try:
        member = library.register_member(Member(**payload.model_dump()))
    except DuplicateMemberError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except LibraryError as e:
        raise _http_error(e)
    return MemberModel(**member.to_dict())


@app.get("/members/{membership_id}", response_model=MemberModel)
def get_member(membership_id: str, library: Library = Depends(get_library)):
    """Look up a member by membership id (the loan form checks it before lending)."""
    try:
        member = library.find_member(membership_id)
    except LibraryError as e:
        raise _http_error(e)
    return MemberModel(**member.to_dict())


# --- Loans ---
@app.post("/loans", response_model=LoanModel, status_code=201)
def create_loan(payload: LoanCreateModel, library: Library = Depends(get_library)):
    try:
        record = library.ledger.create_loan(payload.book_id, payload.membership_id, payload.note)
    except LibraryError as e:
        logger.info(f"Loan refused for book {payload.book_id} / member {payload.membership_id}: {e}")
        raise _http_error(e)
    logger.info(f"Loan {record.id} created: book {record.book_id} -> member {record.membership_id}")
    return _loan_model(record)


@app.post("/loans/{loan_id}/return", response_model=LoanModel)
def return_loan(loan_id: int, library: Library = Depends(get_library)):
    try:
        record = library.ledger.return_loan(loan_id)
    except LibraryError as e:
        logger.info(f"Return refused for loan {loan_id}: {e}")
        raise _http_error(e)
    logger.info(f"Loan {loan_id} returned")
    return _loan_model(record)


@app.get("/loans/active", response_model=List[ActiveLoanModel])
def list_active_loans(library: Library = Depends(get_library)):
    return [_active_loan_model(item) for item in library.ledger.list_active_loans()]


@app.get("/loans/overdue", response_model=List[ActiveLoanModel])
def list_overdue_loans(library: Library = Depends(get_library)):
    return [_active_loan_model(item) for item in library.ledger.list_overdue_loans()]


@app.get("/loans", response_model=List[LoanModel])
def loan_history(
    book_id: Optional[int] = Query(None, description="Only loans of this book"),
    membership_id: Optional[str] = Query(None, description="Only loans of this member"),
    library: Library = Depends(get_library),
):
    try:
        records = library.ledger.loan_history(book_id=book_id, membership_id=membership_id)
    except LibraryError as e:
        raise _http_error(e)
    return [_loan_model(record) for record in records]


@app.get("/loans/{loan_id}", response_model=LoanModel)
def get_loan(loan_id: int, library: Library = Depends(get_library)):
    try:
        record = library.ledger.get_loan(loan_id)
    except LibraryError as e:
        raise _http_error(e)
    return _loan_model(record)


# --- Audit ---
@app.get("/audit/availability", response_model=List[DriftModel])
def availability_audit(library: Library = Depends(get_library)):
    drift = library.availability_drift()
    if drift:
        logger.warning(f"Availability drift detected on {len(drift)} book(s)")
    return drift
