"""Error types raised by the loan ledger and its stores.

Every error is recoverable by the caller and is raised before any partial
mutation is committed. The presentation layers map the three families to
user-facing responses:

- ``NotFoundError``: a referenced book, member or loan does not exist.
- ``InvalidStateError``: the operation is not allowed in the current state
  (returning a returned loan, reserving a copy with zero availability).
- ``ValidationError``: a malformed identifier or field value.
"""

from __future__ import annotations


class LibraryError(Exception):
    """Base class for every ledger and store error."""


class NotFoundError(LibraryError, LookupError):
    pass


class InvalidStateError(LibraryError):
    pass


class ValidationError(LibraryError, ValueError):
    pass


class LoanNotFoundOrAlreadyReturned(LibraryError):
    """Raised by ``return_loan`` when the loan id cannot be closed."""


class BookNotFoundError(NotFoundError):
    def __init__(self, book_id) -> None:
        super().__init__(f"Book {book_id} not found.")
        self.book_id = book_id


class MemberNotFoundError(NotFoundError):
    def __init__(self, membership_id) -> None:
        super().__init__(f"Member {membership_id} not found.")
        self.membership_id = membership_id


class LoanNotFoundError(NotFoundError, LoanNotFoundOrAlreadyReturned):
    def __init__(self, loan_id) -> None:
        super().__init__(f"Loan {loan_id} not found.")
        self.loan_id = loan_id


class NoCopiesAvailableError(InvalidStateError):
    def __init__(self, book_id, title: str | None = None) -> None:
        label = f'"{title}"' if title else str(book_id)
        super().__init__(f"Book {label} has no copies available.")
        self.book_id = book_id


class LoanAlreadyReturnedError(InvalidStateError, LoanNotFoundOrAlreadyReturned):
    def __init__(self, loan_id) -> None:
        super().__init__(f"Loan {loan_id} has already been returned.")
        self.loan_id = loan_id


class DuplicateMemberError(ValidationError):
    def __init__(self, membership_id) -> None:
        super().__init__(f"Membership id {membership_id} is already registered.")
        self.membership_id = membership_id
