from __future__ import annotations

from datetime import datetime
from typing import Callable, Dict, Iterator, List, Optional

from catalog import release_copy, reserve_copy
from errors import BookNotFoundError, LoanAlreadyReturnedError
from loan import (
    DEFAULT_LOAN_PERIOD_DAYS,
    ActiveLoan,
    EffectiveStatus,
    LoanRecord,
    LoanStatus,
    compute_due_date,
    effective_status,
)
from store import LibraryStore
from validators import IdValidator


class LoanLedger:
    """Creates, tracks and closes loans while keeping book availability in step.

    Every mutation runs inside one store transaction, so a copy is never taken
    off the shelf without a matching loan record (and never put back without
    the record being closed). Errors are raised to the caller untouched; the
    ledger does not log or format messages for users.
    """

    def __init__(self, store: LibraryStore, clock: Optional[Callable[[], datetime]] = None,
                 loan_period_days: int = DEFAULT_LOAN_PERIOD_DAYS) -> None:
        if loan_period_days < 0:
            raise ValueError("loan_period_days cannot be negative.")
        self.store = store
        self.clock = clock or datetime.now
        self.loan_period_days = loan_period_days

    # ------------------------- Core operations ------------------------- #
    def create_loan(self, book_id: int, membership_id: str, note: Optional[str] = None) -> LoanRecord:
        """Lend one copy of ``book_id`` to ``membership_id``.

        Raises ``BookNotFoundError``, ``MemberNotFoundError`` or
        ``NoCopiesAvailableError``; on any of them nothing is written.
        """
        book_id = IdValidator.positive_id(book_id, "book_id")
        membership_id = IdValidator.membership_id(membership_id)
        note = note.strip() if note and note.strip() else None

        with self.store.transaction():
            # Checked in order: book, member, copies
            self.store.get_book(book_id)
            self.store.get_member(membership_id)
            reserve_copy(self.store, book_id)
            loan_date = self.clock()
            record = LoanRecord(
                book_id=book_id,
                membership_id=membership_id,
                loan_date=loan_date,
                due_date=compute_due_date(loan_date, self.loan_period_days),
                status=LoanStatus.ACTIVE,
                note=note,
            )
            return self.store.insert_loan(record)

    def return_loan(self, loan_id: int) -> LoanRecord:
        """Close an active loan and put its copy back on the shelf.

        A second return of the same loan raises ``LoanAlreadyReturnedError``
        and leaves availability untouched.
        """
        loan_id = IdValidator.positive_id(loan_id, "loan_id")

        with self.store.transaction():
            record = self.store.get_loan(loan_id)
            if record.status != LoanStatus.ACTIVE:
                raise LoanAlreadyReturnedError(loan_id)
            record.status = LoanStatus.RETURNED
            record.return_date = self.clock()
            self.store.update_loan(record)
            release_copy(self.store, record.book_id)
            return record

    # ------------------------- Reads ------------------------- #
    def list_active_loans(self) -> Iterator[ActiveLoan]:
        """Yield active loans in ascending id order with their derived status.

        The overdue label is computed against the clock at the time the
        sequence is first consumed.
        """
        today = self.clock()
        titles: Dict[int, Optional[str]] = {}
        for record in self.store.list_loans(LoanStatus.ACTIVE):
            if record.book_id not in titles:
                titles[record.book_id] = self._book_title(record.book_id)
            yield ActiveLoan(
                record=record,
                effective_status=effective_status(record, today),
                book_title=titles[record.book_id],
            )

    def list_overdue_loans(self) -> Iterator[ActiveLoan]:
        return (item for item in self.list_active_loans() if item.effective_status == EffectiveStatus.OVERDUE)

    def get_loan(self, loan_id: int) -> LoanRecord:
        return self.store.get_loan(IdValidator.positive_id(loan_id, "loan_id"))

    def loan_history(self, book_id: Optional[int] = None, membership_id: Optional[str] = None) -> List[LoanRecord]:
        """Every loan ever made, oldest first, optionally narrowed to a book or member."""
        if book_id is not None:
            book_id = IdValidator.positive_id(book_id, "book_id")
        if membership_id is not None:
            membership_id = IdValidator.membership_id(membership_id)
        return [
            record
            for record in self.store.list_loans()
            if (book_id is None or record.book_id == book_id)
            and (membership_id is None or record.membership_id == membership_id)
        ]

    def status_of(self, record: LoanRecord) -> EffectiveStatus:
        return effective_status(record, self.clock())

    # ------------------------- Utilities ------------------------- #
    def _book_title(self, book_id: int) -> Optional[str]:
        try:
            return self.store.get_book(book_id).title
        except BookNotFoundError:
            return None
