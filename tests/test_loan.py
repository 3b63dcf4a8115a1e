from datetime import date, datetime

import pytest

from errors import ValidationError
from loan import (
    DEFAULT_LOAN_PERIOD_DAYS,
    EffectiveStatus,
    LoanRecord,
    LoanStatus,
    compute_due_date,
    effective_status,
    is_overdue,
)
from validators import IdValidator, TextValidator


def test_due_date_is_ten_calendar_days_later():
    assert DEFAULT_LOAN_PERIOD_DAYS == 10
    assert compute_due_date(datetime(2026, 2, 25, 16, 0)) == datetime(2026, 3, 7, 16, 0)
    assert compute_due_date(datetime(2026, 12, 28, 8, 0)) == datetime(2027, 1, 7, 8, 0)


def test_negative_period_rejected():
    with pytest.raises(ValueError):
        compute_due_date(datetime(2026, 1, 1), days=-1)


@pytest.mark.parametrize("due,today,expected", [
    (datetime(2026, 3, 10, 18, 0), datetime(2026, 3, 10, 23, 59), False),
    (datetime(2026, 3, 10, 18, 0), datetime(2026, 3, 11, 0, 1), True),
    (datetime(2026, 3, 10, 18, 0), date(2026, 3, 9), False),
    (date(2026, 3, 10), date(2026, 3, 11), True),
])
def test_is_overdue_uses_day_granularity(due, today, expected):
    assert is_overdue(due, today) is expected


def test_effective_status():
    record = LoanRecord(book_id=1, membership_id="m1",
                        loan_date=datetime(2026, 3, 1, 10, 0), due_date=datetime(2026, 3, 11, 10, 0))
    assert effective_status(record, datetime(2026, 3, 11, 20, 0)) == EffectiveStatus.ACTIVE
    assert effective_status(record, datetime(2026, 3, 12, 8, 0)) == EffectiveStatus.OVERDUE

    record.status = LoanStatus.RETURNED
    assert effective_status(record, datetime(2026, 4, 1)) == EffectiveStatus.RETURNED


def test_record_dict_round_trip_keeps_dates():
    record = LoanRecord(id=7, book_id=3, membership_id="2024001",
                        loan_date=datetime(2026, 3, 1, 10, 0), due_date=datetime(2026, 3, 11, 10, 0),
                        status=LoanStatus.RETURNED, return_date=datetime(2026, 3, 5, 9, 30), note="ok")
    data = record.to_dict()
    assert data["status"] == "RETURNED"
    assert LoanRecord.from_dict(data) == record


def test_positive_id_accepts_digit_strings():
    assert IdValidator.positive_id(" 12 ") == 12
    assert IdValidator.positive_id(5) == 5
    with pytest.raises(ValidationError):
        IdValidator.positive_id("-4")


def test_text_helpers():
    assert TextValidator.digits_only("529.982.247-25") == "52998224725"
    assert TextValidator.digits_only("---") is None
    assert TextValidator.required("  Ana ", "name") == "Ana"
    with pytest.raises(ValidationError):
        TextValidator.required(None, "name")


def test_positive_id_upper_bound():
    assert IdValidator.positive_id(2**63 - 1) == 2**63 - 1
    with pytest.raises(ValidationError):
        IdValidator.positive_id(2**63)
    with pytest.raises(ValidationError):
        IdValidator.positive_id(str(10**20))
