import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from book import Book
from catalog import find_availability_drift
from errors import LoanAlreadyReturnedError, NoCopiesAvailableError
from ledger import LoanLedger
from member import Member


def _race(n_workers, fn):
    """Run ``fn`` from ``n_workers`` threads released at the same moment."""
    barrier = threading.Barrier(n_workers)

    def worker(i):
        barrier.wait()
        try:
            return ("ok", fn(i))
        except Exception as e:
            return ("error", e)

    with ThreadPoolExecutor(max_workers=n_workers) as pool:
        return list(pool.map(worker, range(n_workers)))


@pytest.mark.parametrize("copies,requests", [(3, 12), (1, 8)])
def test_concurrent_loans_for_last_copies(store, clock, copies, requests):
    book = store.add_book(Book("Os Sertões", "Euclides da Cunha", total_copies=copies))
    for i in range(requests):
        store.add_member(Member(f"m{i}", f"Member {i}"))
    ledger = LoanLedger(store, clock=clock)

    results = _race(requests, lambda i: ledger.create_loan(book.id, f"m{i}"))

    successes = [value for kind, value in results if kind == "ok"]
    failures = [value for kind, value in results if kind == "error"]
    assert len(successes) == copies
    assert len(failures) == requests - copies
    assert all(isinstance(e, NoCopiesAvailableError) for e in failures)
    assert store.get_book(book.id).available_copies == 0
    assert len({record.id for record in successes}) == copies
    assert find_availability_drift(store) == []


def test_concurrent_returns_of_same_loan(store, clock):
    book = store.add_book(Book("Triste Fim de Policarpo Quaresma", "Lima Barreto", total_copies=2))
    store.add_member(Member("m1", "Member One"))
    ledger = LoanLedger(store, clock=clock)
    record = ledger.create_loan(book.id, "m1")

    results = _race(6, lambda i: ledger.return_loan(record.id))

    assert sum(1 for kind, _ in results if kind == "ok") == 1
    assert all(isinstance(value, LoanAlreadyReturnedError) for kind, value in results if kind == "error")
    assert store.get_book(book.id).available_copies == 2
