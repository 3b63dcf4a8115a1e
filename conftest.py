import os
from datetime import datetime, timedelta

import pytest

from book import Book
from ledger import LoanLedger
from member import Member
from sqlite_store import SQLiteStore
from store import InMemoryStore


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, days: int = 0, hours: int = 0) -> None:
        self.now = self.now + timedelta(days=days, hours=hours)


@pytest.fixture
def clock():
    return FrozenClock(datetime(2026, 3, 2, 14, 30))


@pytest.fixture
def memory_store():
    return InMemoryStore()


@pytest.fixture
def sqlite_store(tmp_path, request):
    # Each test gets its own database file
    db_file = str(tmp_path / f"test_{request.node.name}.db")
    store = SQLiteStore(db_file)
    yield store
    store.close()
    if os.path.exists(db_file):
        try:
            os.remove(db_file)
        except OSError:
            pass


@pytest.fixture(params=["memory", "sqlite"])
def store(request):
    """Runs the test once per store implementation."""
    return request.getfixturevalue(f"{request.param}_store")


@pytest.fixture
def ledger(store, clock):
    return LoanLedger(store, clock=clock)


@pytest.fixture
def seeded(store):
    """A two-copy book, a single-copy book and two members."""
    books = {
        "dom_casmurro": store.add_book(Book("Dom Casmurro", "Machado de Assis", total_copies=2)),
        "iracema": store.add_book(Book("Iracema", "José de Alencar", total_copies=1)),
    }
    store.add_member(Member("2024001", "Ana Souza", email="ana@escola.br", kind="student"))
    store.add_member(Member("2024002", "Bruno Lima", kind="teacher"))
    return books
