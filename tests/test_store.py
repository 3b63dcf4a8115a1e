import sqlite3
from datetime import datetime, timedelta

import pytest

from book import Book
from database import get_db_connection
from errors import BookNotFoundError, DuplicateMemberError, LoanNotFoundError, MemberNotFoundError
from ledger import LoanLedger
from loan import LoanRecord, LoanStatus
from member import Member
from sqlite_store import SQLiteStore


def _record(book_id, membership_id="m1"):
    return LoanRecord(
        book_id=book_id,
        membership_id=membership_id,
        loan_date=datetime(2026, 1, 5, 9, 0),
        due_date=datetime(2026, 1, 15, 9, 0),
    )


def test_add_and_get_book(store):
    book = store.add_book(Book("Capitães da Areia", "Jorge Amado", total_copies=4, genre="Romance", year=1937))
    assert book.id is not None

    stored = store.get_book(book.id)
    assert stored.title == "Capitães da Areia"
    assert (stored.total_copies, stored.available_copies) == (4, 4)
    assert stored.year == 1937


def test_returned_objects_are_copies(store):
    book = store.add_book(Book("Grande Sertão: Veredas", "Guimarães Rosa", total_copies=1))
    fetched = store.get_book(book.id)
    fetched.available_copies = 0
    assert store.get_book(book.id).available_copies == 1


def test_missing_records(store):
    with pytest.raises(BookNotFoundError):
        store.get_book(1)
    with pytest.raises(MemberNotFoundError):
        store.get_member("x")
    with pytest.raises(LoanNotFoundError):
        store.get_loan(1)
    with pytest.raises(BookNotFoundError):
        store.update_book(Book("Ghost", "Nobody", id=77))


def test_duplicate_member(store):
    store.add_member(Member("2024001", "Ana Souza"))
    with pytest.raises(DuplicateMemberError):
        store.add_member(Member("2024001", "Outra Pessoa"))
    assert store.get_member("2024001").name == "Ana Souza"


def test_member_fields_round_trip(store):
    store.add_member(Member("2024003", "Carla Dias", cpf="52998224725", email="carla@escola.br",
                            phone="11987654321", kind="student"))
    member = store.get_member("2024003")
    assert member.kind == "student"
    assert member.cpf == "52998224725"
    assert member.registered_at is not None


def test_loans_listed_in_id_order_and_filtered(store):
    book = store.add_book(Book("Quincas Borba", "Machado de Assis", total_copies=3))
    store.add_member(Member("m1", "Member One"))
    first = store.insert_loan(_record(book.id))
    second = store.insert_loan(_record(book.id))
    second.status = LoanStatus.RETURNED
    second.return_date = datetime(2026, 1, 9, 10, 0)
    store.update_loan(second)

    assert [r.id for r in store.list_loans()] == [first.id, second.id]
    assert [r.id for r in store.list_loans(LoanStatus.ACTIVE)] == [first.id]
    assert store.get_loan(second.id).return_date == datetime(2026, 1, 9, 10, 0)


def test_transaction_rolls_back_on_error(store):
    book = store.add_book(Book("O Guarani", "José de Alencar", total_copies=2))
    with pytest.raises(RuntimeError):
        with store.transaction():
            changed = store.get_book(book.id)
            changed.available_copies = 1
            store.update_book(changed)
            raise RuntimeError("boom")
    assert store.get_book(book.id).available_copies == 2


def test_nested_transaction_joins_outer(store):
    book = store.add_book(Book("Til", "José de Alencar", total_copies=2))
    with pytest.raises(RuntimeError):
        with store.transaction():
            with store.transaction():
                changed = store.get_book(book.id)
                changed.available_copies = 0
                store.update_book(changed)
            raise RuntimeError("outer fails")
    assert store.get_book(book.id).available_copies == 2


def test_sqlite_data_survives_reopen(tmp_path):
    db_file = str(tmp_path / "library.db")
    store = SQLiteStore(db_file)
    book = store.add_book(Book("Sagarana", "Guimarães Rosa", total_copies=1))
    store.add_member(Member("2024001", "Ana Souza"))
    record = LoanLedger(store).create_loan(book.id, "2024001", note="book club")

    reopened = SQLiteStore(db_file)
    assert reopened.get_book(book.id).available_copies == 0
    assert reopened.get_loan(record.id).note == "book club"


def test_sqlite_loan_ids_not_reused(sqlite_store):
    book = sqlite_store.add_book(Book("Angústia", "Graciliano Ramos", total_copies=2))
    sqlite_store.add_member(Member("m1", "Member One"))
    first = sqlite_store.insert_loan(_record(book.id))

    # Rolled-back inserts leave no row behind
    with pytest.raises(RuntimeError):
        with sqlite_store.transaction():
            sqlite_store.insert_loan(_record(book.id))
            raise RuntimeError("abort")
    second = sqlite_store.insert_loan(_record(book.id))
    assert second.id > first.id
    assert [r.id for r in sqlite_store.list_loans()] == [first.id, second.id]


def test_sqlite_schema_rejects_negative_availability(sqlite_store):
    book = sqlite_store.add_book(Book("Iracema", "José de Alencar", total_copies=1))
    book.available_copies = -1
    with pytest.raises(sqlite3.IntegrityError):
        sqlite_store.update_book(book)


def test_sqlite_schema_has_member_kind_and_loan_note(sqlite_store):
    conn = get_db_connection(sqlite_store.db_file)
    try:
        member_columns = [row[1] for row in conn.execute("PRAGMA table_info(members)").fetchall()]
        loan_columns = [row[1] for row in conn.execute("PRAGMA table_info(loans)").fetchall()]
    finally:
        conn.close()
    assert "kind" in member_columns
    assert "note" in loan_columns


def test_sqlite_error_after_transaction_ended_keeps_original_exception(sqlite_store):
    book = sqlite_store.add_book(Book("Memórias Póstumas", "Machado de Assis", total_copies=1))
    with pytest.raises(RuntimeError, match="original failure"):
        with sqlite_store.transaction():
            changed = sqlite_store.get_book(book.id)
            changed.available_copies = 0
            sqlite_store.update_book(changed)
            # The transaction is gone before the block fails
            sqlite_store._local.conn.execute("ROLLBACK")
            raise RuntimeError("original failure")
    assert sqlite_store.get_book(book.id).available_copies == 1


def test_registered_at_is_utc_iso_timestamp(store):
    member = store.add_member(Member("2024005", "Eva Rocha"))
    stored = store.get_member("2024005")
    assert stored.registered_at == member.registered_at

    parsed = datetime.fromisoformat(stored.registered_at)
    assert parsed.utcoffset() == timedelta(0)
    assert parsed.microsecond == 0
