from datetime import datetime
from typing import Callable, List, Optional

import catalog
from book import Book
from config import settings
from ledger import LoanLedger
from member import Member
from sqlite_store import SQLiteStore
from store import LibraryStore
from validators import IdValidator, TextValidator


class Library:
    """Front door used by the API and the CLI.

    Owns the store, registers books and members, and exposes the loan ledger
    as ``self.ledger``.
    """

    def __init__(self, store: Optional[LibraryStore] = None, db_file: Optional[str] = None,
                 clock: Optional[Callable[[], datetime]] = None,
                 loan_period_days: Optional[int] = None) -> None:
        self.store = store if store is not None else SQLiteStore(db_file or settings.database_file)
        period = settings.loan_period_days if loan_period_days is None else loan_period_days
        self.ledger = LoanLedger(self.store, clock=clock, loan_period_days=period)

    # ------------------------- Catalog ------------------------- #
    def add_book(self, book: Book) -> Book:
        """Register a title with all of its copies on the shelf."""
        book.title = TextValidator.required(book.title, "title")
        book.author = TextValidator.required(book.author, "author")
        book.total_copies = TextValidator.copies(book.total_copies)
        book.available_copies = book.total_copies
        return self.store.add_book(book)

    def find_book(self, book_id: int) -> Book:
        return self.store.get_book(IdValidator.positive_id(book_id, "book_id"))

    def set_total_copies(self, book_id: int, total_copies: int) -> Book:
        return catalog.adjust_total_copies(self.store, book_id, total_copies)

    def availability_drift(self) -> List[dict]:
        return catalog.find_availability_drift(self.store)

    # ------------------------- Members ------------------------- #
    def register_member(self, member: Member) -> Member:
        member.membership_id = IdValidator.membership_id(member.membership_id)
        member.name = TextValidator.required(member.name, "name")
        # CPF and phone arrive masked from the form; store digits only
        member.cpf = TextValidator.digits_only(member.cpf)
        member.phone = TextValidator.digits_only(member.phone)
        return self.store.add_member(member)

    def find_member(self, membership_id: str) -> Member:
        return self.store.get_member(IdValidator.membership_id(membership_id))

    def close(self) -> None:
        self.store.close()
