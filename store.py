"""Persistence interface used by the loan ledger.

The ledger only talks to a ``LibraryStore``. Two implementations exist:
``InMemoryStore`` below (tests and single-process use) and
``sqlite_store.SQLiteStore`` for the relational database.

Stores hand out copies of their records. Changing a returned ``Book`` or
``LoanRecord`` has no effect until it is written back with ``update_book`` or
``update_loan``.
"""

from __future__ import annotations

import itertools
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional

from book import Book
from errors import BookNotFoundError, DuplicateMemberError, LoanNotFoundError, MemberNotFoundError
from loan import LoanRecord, LoanStatus
from member import Member, registration_timestamp


class LibraryStore(ABC):
    """Books, members and loan records, plus an atomic unit of work."""

    # ------------------------- Catalog ------------------------- #
    @abstractmethod
    def get_book(self, book_id: int) -> Book:
        """Return the book or raise ``BookNotFoundError``."""

    @abstractmethod
    def update_book(self, book: Book) -> Book:
        """Persist every field of an existing book."""

    @abstractmethod
    def add_book(self, book: Book) -> Book:
        """Register a book; the store assigns its id."""

    @abstractmethod
    def list_books(self) -> List[Book]:
        ...

    # ------------------------- Members ------------------------- #
    @abstractmethod
    def get_member(self, membership_id: str) -> Member:
        """Return the member or raise ``MemberNotFoundError``."""

    @abstractmethod
    def add_member(self, member: Member) -> Member:
        """Register a member; raises ``DuplicateMemberError`` on a taken id."""

    # ------------------------- Loans ------------------------- #
    @abstractmethod
    def list_loans(self, status: Optional[LoanStatus] = None) -> List[LoanRecord]:
        """Loan records in ascending id order, optionally filtered by status."""

    @abstractmethod
    def get_loan(self, loan_id: int) -> LoanRecord:
        ...

    @abstractmethod
    def insert_loan(self, record: LoanRecord) -> LoanRecord:
        """Append a record; returns it with the id taken from the store sequence."""

    @abstractmethod
    def update_loan(self, record: LoanRecord) -> LoanRecord:
        ...

    # ------------------------- Unit of work ------------------------- #
    @abstractmethod
    def transaction(self):
        """Context manager making the enclosed calls one atomic, serialised unit.

        Concurrent transactions on the same store run one at a time. If the
        block raises, every change made inside it is discarded.
        """

    def close(self) -> None:
        return None


class InMemoryStore(LibraryStore):
    """Dictionary-backed store guarded by a re-entrant lock."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._books: Dict[int, Book] = {}
        self._members: Dict[str, Member] = {}
        self._loans: Dict[int, LoanRecord] = {}
        self._book_ids = itertools.count(1)
        self._loan_ids = itertools.count(1)
        self._depth = 0

    @contextmanager
    def transaction(self) -> Iterator["InMemoryStore"]:
        with self._lock:
            outermost = self._depth == 0
            if outermost:
                snapshot = (
                    {k: v.copy() for k, v in self._books.items()},
                    dict(self._members),
                    {k: v.copy() for k, v in self._loans.items()},
                )
            self._depth += 1
            try:
                yield self
            except BaseException:
                if outermost:
                    self._books, self._members, self._loans = snapshot
                raise
            finally:
                self._depth -= 1

    def get_book(self, book_id: int) -> Book:
        with self._lock:
            book = self._books.get(book_id)
            if book is None:
                raise BookNotFoundError(book_id)
            return book.copy()

    def update_book(self, book: Book) -> Book:
        with self._lock:
            if book.id not in self._books:
                raise BookNotFoundError(book.id)
            self._books[book.id] = book.copy()
            return book

    def add_book(self, book: Book) -> Book:
        with self._lock:
            book.id = next(self._book_ids)
            self._books[book.id] = book.copy()
            return book

    def list_books(self) -> List[Book]:
        with self._lock:
            return [self._books[k].copy() for k in sorted(self._books)]

    def get_member(self, membership_id: str) -> Member:
        with self._lock:
            member = self._members.get(membership_id)
            if member is None:
                raise MemberNotFoundError(membership_id)
            return Member.from_dict(member.to_dict())

    def add_member(self, member: Member) -> Member:
        with self._lock:
            if member.membership_id in self._members:
                raise DuplicateMemberError(member.membership_id)
            if member.registered_at is None:
                member.registered_at = registration_timestamp()
            self._members[member.membership_id] = Member.from_dict(member.to_dict())
            return member

    def list_loans(self, status: Optional[LoanStatus] = None) -> List[LoanRecord]:
        with self._lock:
            return [
                self._loans[k].copy()
                for k in sorted(self._loans)
                if status is None or self._loans[k].status == status
            ]

    def get_loan(self, loan_id: int) -> LoanRecord:
        with self._lock:
            record = self._loans.get(loan_id)
            if record is None:
                raise LoanNotFoundError(loan_id)
            return record.copy()

    def insert_loan(self, record: LoanRecord) -> LoanRecord:
        with self._lock:
            record.id = next(self._loan_ids)
            self._loans[record.id] = record.copy()
            return record

    def update_loan(self, record: LoanRecord) -> LoanRecord:
        with self._lock:
            if record.id not in self._loans:
                raise LoanNotFoundError(record.id)
            self._loans[record.id] = record.copy()
            return record
