import logging
import sqlite3
import threading
from contextlib import contextmanager
from typing import Iterator, List, Optional

import database
from book import Book
from database import get_db_connection, initialize_database
from errors import BookNotFoundError, DuplicateMemberError, LoanNotFoundError, MemberNotFoundError
from loan import LoanRecord, LoanStatus
from member import Member, registration_timestamp
from store import LibraryStore

logger = logging.getLogger(__name__)

_BOOK_COLUMNS = (
    "id, title, author, genre, publisher, edition, year, isbn, barcode, total_copies, available_copies"
)
_MEMBER_COLUMNS = "membership_id, name, cpf, email, phone, kind, registered_at"
_LOAN_COLUMNS = "id, book_id, membership_id, loan_date, due_date, return_date, status, note"


class SQLiteStore(LibraryStore):
    """Store backed by a SQLite database file.

    Outside a transaction every call opens its own short-lived connection.
    Inside ``transaction()`` the calls made by the same thread share one
    connection holding a ``BEGIN IMMEDIATE`` write lock, which serialises
    concurrent loans and returns at the database.
    """

    def __init__(self, db_file: Optional[str] = None) -> None:
        self.db_file = db_file or database.DATABASE_FILE
        initialize_database(self.db_file)
        self._local = threading.local()

    # ------------------------- Connections ------------------------- #
    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            yield conn
            return
        conn = get_db_connection(self.db_file)
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator["SQLiteStore"]:
        if getattr(self._local, "conn", None) is not None:
            # Nested: join the enclosing transaction
            yield self
            return

        conn = get_db_connection(self.db_file)
        conn.execute("BEGIN IMMEDIATE")
        self._local.conn = conn
        try:
            yield self
        except BaseException:
            # A failed statement may already have ended the transaction
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        else:
            conn.execute("COMMIT")
        finally:
            self._local.conn = None
            conn.close()

    # ------------------------- Catalog ------------------------- #
    def get_book(self, book_id: int) -> Book:
        with self._connection() as conn:
            row = conn.execute(f"SELECT {_BOOK_COLUMNS} FROM books WHERE id = ?", (book_id,)).fetchone()
        if row is None:
            raise BookNotFoundError(book_id)
        return Book.from_dict(dict(row))

    def update_book(self, book: Book) -> Book:
        with self._connection() as conn:
            cursor = conn.execute(
                """
                UPDATE books SET title = ?, author = ?, genre = ?, publisher = ?, edition = ?, year = ?,
                    isbn = ?, barcode = ?, total_copies = ?, available_copies = ?
                WHERE id = ?
                """,
                (book.title, book.author, book.genre, book.publisher, book.edition, book.year,
                 book.isbn, book.barcode, book.total_copies, book.available_copies, book.id),
            )
            if cursor.rowcount == 0:
                raise BookNotFoundError(book.id)
        return book

    def add_book(self, book: Book) -> Book:
        with self._connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO books (title, author, genre, publisher, edition, year, isbn, barcode,
                    total_copies, available_copies)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (book.title, book.author, book.genre, book.publisher, book.edition, book.year,
                 book.isbn, book.barcode, book.total_copies, book.available_copies),
            )
            book.id = cursor.lastrowid
        logger.info(f"Book registered: id={book.id} title={book.title!r} copies={book.total_copies}")
        return book

    def list_books(self) -> List[Book]:
        with self._connection() as conn:
            rows = conn.execute(f"SELECT {_BOOK_COLUMNS} FROM books ORDER BY id").fetchall()
        return [Book.from_dict(dict(row)) for row in rows]

    # ------------------------- Members ------------------------- #
    def get_member(self, membership_id: str) -> Member:
        with self._connection() as conn:
            row = conn.execute(
                f"SELECT {_MEMBER_COLUMNS} FROM members WHERE membership_id = ?", (membership_id,)
            ).fetchone()
        if row is None:
            raise MemberNotFoundError(membership_id)
        return Member.from_dict(dict(row))

    def add_member(self, member: Member) -> Member:
        registered_at = member.registered_at or registration_timestamp()
        with self._connection() as conn:
            try:
                conn.execute(
                    f"INSERT INTO members ({_MEMBER_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (member.membership_id, member.name, member.cpf, member.email, member.phone, member.kind,
                     registered_at),
                )
            except sqlite3.IntegrityError as e:
                raise DuplicateMemberError(member.membership_id) from e
        member.registered_at = registered_at
        logger.info(f"Member registered: {member.membership_id}")
        return member

    # ------------------------- Loans ------------------------- #
    def list_loans(self, status: Optional[LoanStatus] = None) -> List[LoanRecord]:
        with self._connection() as conn:
            if status is None:
                rows = conn.execute(f"SELECT {_LOAN_COLUMNS} FROM loans ORDER BY id").fetchall()
            else:
                rows = conn.execute(
                    f"SELECT {_LOAN_COLUMNS} FROM loans WHERE status = ? ORDER BY id", (status.value,)
                ).fetchall()
        return [LoanRecord.from_dict(dict(row)) for row in rows]

    def get_loan(self, loan_id: int) -> LoanRecord:
        with self._connection() as conn:
            row = conn.execute(f"SELECT {_LOAN_COLUMNS} FROM loans WHERE id = ?", (loan_id,)).fetchone()
        if row is None:
            raise LoanNotFoundError(loan_id)
        return LoanRecord.from_dict(dict(row))

    def insert_loan(self, record: LoanRecord) -> LoanRecord:
        data = record.to_dict()
        with self._connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO loans (book_id, membership_id, loan_date, due_date, return_date, status, note)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (data["book_id"], data["membership_id"], data["loan_date"], data["due_date"],
                 data["return_date"], data["status"], data["note"]),
            )
            record.id = cursor.lastrowid
        return record

    def update_loan(self, record: LoanRecord) -> LoanRecord:
        data = record.to_dict()
        with self._connection() as conn:
            cursor = conn.execute(
                "UPDATE loans SET return_date = ?, status = ?, note = ? WHERE id = ?",
                (data["return_date"], data["status"], data["note"], record.id),
            )
            if cursor.rowcount == 0:
                raise LoanNotFoundError(record.id)
        return record
