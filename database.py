import logging
import sqlite3
from typing import Optional

from config import settings

logger = logging.getLogger(__name__)

# Default database file, overridden by LIBRARY_DB_FILE (see config.Settings)
DATABASE_FILE = settings.database_file


def get_db_connection(db_file: Optional[str] = None) -> sqlite3.Connection:
    """Open a connection to the SQLite database in autocommit mode.

    Transactions are started explicitly with ``BEGIN IMMEDIATE`` by the store,
    so the driver's implicit transaction handling is switched off.
    """
    conn = sqlite3.connect(
        db_file or DATABASE_FILE,
        timeout=settings.database_timeout,
        isolation_level=None,
        check_same_thread=False,
    )
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys=ON;")
    conn.execute(f"PRAGMA busy_timeout={int(settings.database_timeout * 1000)};")
    return conn


def create_tables(conn: sqlite3.Connection) -> None:
    """Create the tables if they do not exist yet."""
    # WAL lets readers proceed while a loan transaction holds the write lock
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")

    conn.execute("""
        CREATE TABLE IF NOT EXISTS books (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            title TEXT NOT NULL,
            author TEXT NOT NULL,
            genre TEXT,
            publisher TEXT,
            edition TEXT,
            year INTEGER,
            isbn TEXT,
            barcode TEXT,
            total_copies INTEGER NOT NULL CHECK(total_copies >= 0),
            available_copies INTEGER NOT NULL
                CHECK(available_copies >= 0 AND available_copies <= total_copies),
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    """)

    conn.execute("""
        CREATE TABLE IF NOT EXISTS members (
            membership_id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            cpf TEXT,
            email TEXT,
            phone TEXT,
            kind TEXT,
            registered_at TEXT NOT NULL
        )
    """)

    # Append-only: rows are inserted by a loan and updated once by its return
    conn.execute("""
        CREATE TABLE IF NOT EXISTS loans (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            book_id INTEGER NOT NULL,
            membership_id TEXT NOT NULL,
            loan_date TEXT NOT NULL,
            due_date TEXT NOT NULL,
            return_date TEXT,
            status TEXT NOT NULL DEFAULT 'ACTIVE' CHECK(status IN ('ACTIVE', 'RETURNED')),
            note TEXT,
            FOREIGN KEY (book_id) REFERENCES books(id),
            FOREIGN KEY (membership_id) REFERENCES members(membership_id)
        )
    """)

    conn.execute("CREATE INDEX IF NOT EXISTS idx_loans_status ON loans(status)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_loans_book_id ON loans(book_id)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_loans_membership_id ON loans(membership_id)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_books_title ON books(title)")


def initialize_database(db_file: Optional[str] = None) -> None:
    """Create the database file and its tables if needed."""
    conn = get_db_connection(db_file)
    try:
        create_tables(conn)
        logger.debug(f"Database ready at {db_file or DATABASE_FILE}")
    finally:
        conn.close()


def ping(db_file: Optional[str] = None) -> bool:
    """Quick connectivity check used by the health endpoint."""
    try:
        conn = get_db_connection(db_file)
        try:
            conn.execute("SELECT 1")
        finally:
            conn.close()
        return True
    except sqlite3.Error as e:
        logger.warning(f"Database ping failed: {e}")
        return False
