"""Loan records and the date arithmetic around them.

A loan is due a fixed number of calendar days after it was made. Whether a
loan is overdue is never stored: it is derived on every read from the due
date and the current day, compared at date granularity so a loan due today
is not reported late before the day is over.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional, Union

DEFAULT_LOAN_PERIOD_DAYS = 10


class LoanStatus(str, Enum):
    ACTIVE = "ACTIVE"
    RETURNED = "RETURNED"


class EffectiveStatus(str, Enum):
    """Read-time label shown to callers."""
    ACTIVE = "ACTIVE"
    OVERDUE = "OVERDUE"
    RETURNED = "RETURNED"


@dataclass
class LoanRecord:
    book_id: int
    membership_id: str
    loan_date: datetime
    due_date: datetime
    status: LoanStatus = LoanStatus.ACTIVE
    return_date: Optional[datetime] = None
    note: Optional[str] = None
    id: Optional[int] = None

    def copy(self) -> "LoanRecord":
        return replace(self)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "book_id": self.book_id,
            "membership_id": self.membership_id,
            "loan_date": self.loan_date.isoformat(),
            "due_date": self.due_date.isoformat(),
            "return_date": self.return_date.isoformat() if self.return_date else None,
            "status": self.status.value,
            "note": self.note,
        }

    @staticmethod
    def from_dict(data: dict) -> "LoanRecord":
        return_date = data.get("return_date")
        return LoanRecord(
            id=data.get("id"),
            book_id=data["book_id"],
            membership_id=data["membership_id"],
            loan_date=_parse_datetime(data["loan_date"]),
            due_date=_parse_datetime(data["due_date"]),
            return_date=_parse_datetime(return_date) if return_date else None,
            status=LoanStatus(data.get("status", LoanStatus.ACTIVE.value)),
            note=data.get("note"),
        )


@dataclass
class ActiveLoan:
    """An active record annotated with its derived status."""
    record: LoanRecord
    effective_status: EffectiveStatus
    book_title: Optional[str] = field(default=None)

    @property
    def is_overdue(self) -> bool:
        return self.effective_status == EffectiveStatus.OVERDUE


def _parse_datetime(value: Union[str, datetime]) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def _as_date(value: Union[date, datetime]) -> date:
    return value.date() if isinstance(value, datetime) else value


def compute_due_date(loan_date: datetime, days: int = DEFAULT_LOAN_PERIOD_DAYS) -> datetime:
    """Return the due date of a loan made at ``loan_date``."""
    if days < 0:
        raise ValueError("Loan period cannot be negative.")
    return loan_date + timedelta(days=days)


def is_overdue(due_date: Union[date, datetime], today: Union[date, datetime]) -> bool:
    """True when the due day is strictly before ``today`` (time of day ignored)."""
    return _as_date(due_date) < _as_date(today)


def effective_status(record: LoanRecord, today: Union[date, datetime]) -> EffectiveStatus:
    if record.status == LoanStatus.RETURNED:
        return EffectiveStatus.RETURNED
    if is_overdue(record.due_date, today):
        return EffectiveStatus.OVERDUE
    return EffectiveStatus.ACTIVE
