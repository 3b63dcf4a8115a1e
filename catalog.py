"""Availability accounting for catalog books.

``reserve_copy`` and ``release_copy`` are the only calls that move
``available_copies`` in step with the loan ledger. They must run inside the
caller's store transaction together with the matching ledger write.
"""

from __future__ import annotations

from collections import Counter
from typing import Dict, List

from book import Book
from errors import InvalidStateError, NoCopiesAvailableError
from loan import LoanStatus
from store import LibraryStore
from validators import IdValidator, TextValidator


def reserve_copy(store: LibraryStore, book_id: int) -> Book:
    """Take one copy off the shelf. Raises ``NoCopiesAvailableError`` at zero."""
    book = store.get_book(book_id)
    if book.available_copies <= 0:
        raise NoCopiesAvailableError(book.id, book.title)
    book.available_copies -= 1
    return store.update_book(book)


def release_copy(store: LibraryStore, book_id: int) -> Book:
    """Put one copy back on the shelf, never above ``total_copies``."""
    book = store.get_book(book_id)
    if book.available_copies >= book.total_copies:
        raise InvalidStateError(
            f"Book {book.id} already has all {book.total_copies} copies available."
        )
    book.available_copies += 1
    return store.update_book(book)


def adjust_total_copies(store: LibraryStore, book_id: int, new_total: int) -> Book:
    """Change the number of copies a title has.

    Copies currently on loan stay on loan, so the new total cannot drop below
    the number of copies out; the shelf count follows the new total.
    """
    book_id = IdValidator.positive_id(book_id, "book_id")
    new_total = TextValidator.copies(new_total)
    with store.transaction():
        book = store.get_book(book_id)
        on_loan = book.copies_on_loan
        if new_total < on_loan:
            raise InvalidStateError(
                f"Book {book.id} has {on_loan} copies on loan; total cannot drop to {new_total}."
            )
        book.total_copies = new_total
        book.available_copies = new_total - on_loan
        return store.update_book(book)


def expected_availability(store: LibraryStore) -> Dict[int, int]:
    """Availability of every book as re-derived from the active loans."""
    active = Counter(record.book_id for record in store.list_loans(LoanStatus.ACTIVE))
    return {book.id: book.total_copies - active.get(book.id, 0) for book in store.list_books()}


def find_availability_drift(store: LibraryStore) -> List[dict]:
    """Books whose stored availability disagrees with the ledger."""
    with store.transaction():
        expected = expected_availability(store)
        drift = []
        for book in store.list_books():
            if book.available_copies != expected[book.id]:
                drift.append({
                    "book_id": book.id,
                    "title": book.title,
                    "total_copies": book.total_copies,
                    "available_copies": book.available_copies,
                    "expected_available_copies": expected[book.id],
                })
        return drift
