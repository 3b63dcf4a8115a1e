import os
import json
from typing import Any, Dict, List

from rich.console import Console
from rich.table import Table

from loan import ActiveLoan, LoanRecord

# Environment variable controlling CLI output
# Allowed values: 'plain' (default), 'json', 'rich'
OUTPUT_MODE_ENV = "LIB_CLI_OUTPUT"

_console = Console()


def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode


def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, "plain").lower()


def _fmt_date(value) -> str:
    return value.strftime("%d/%m/%Y") if value else "-"


def print_active_loans(items: List[ActiveLoan], empty_message: str = "No active loans.") -> None:
    """Print active loans according to the output mode.
    - plain: one line per loan, overdue ones tagged OVERDUE
    - json: list of loan dicts with effective_status and book_title
    - rich: table with overdue rows in red
    """
    mode = get_output_mode()

    if not items:
        print(empty_message)
        return

    if mode == "json":
        payload = [
            {**item.record.to_dict(), "effective_status": item.effective_status.value, "book_title": item.book_title}
            for item in items
        ]
        print(json.dumps(payload, ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="Active loans", show_lines=True, header_style="bold cyan")
        table.add_column("Loan", style="magenta", no_wrap=True)
        table.add_column("Book", no_wrap=True)
        table.add_column("Title")
        table.add_column("Member")
        table.add_column("Loaned")
        table.add_column("Due")
        table.add_column("Status")
        for item in items:
            r = item.record
            table.add_row(
                str(r.id), str(r.book_id), item.book_title or "Book removed", r.membership_id,
                _fmt_date(r.loan_date), _fmt_date(r.due_date), item.effective_status.value,
                style="bold red" if item.is_overdue else None,
            )
        _console.print(table)
    else:
        for item in items:
            r = item.record
            print(
                f"#{r.id} book {r.book_id} ({item.book_title or 'Book removed'}) -> {r.membership_id} "
                f"due {_fmt_date(r.due_date)} [{item.effective_status.value}]"
            )


def print_history(records: List[LoanRecord]) -> None:
    mode = get_output_mode()

    if not records:
        print("No loans recorded.")
        return

    if mode == "json":
        print(json.dumps([r.to_dict() for r in records], ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="Loan history", header_style="bold cyan")
        for column in ("Loan", "Book", "Member", "Loaned", "Due", "Returned", "Status"):
            table.add_column(column)
        for r in records:
            table.add_row(
                str(r.id), str(r.book_id), r.membership_id, _fmt_date(r.loan_date),
                _fmt_date(r.due_date), _fmt_date(r.return_date), r.status.value,
            )
        _console.print(table)
    else:
        for r in records:
            print(f"#{r.id} book {r.book_id} -> {r.membership_id} {r.status.value} "
                  f"(loaned {_fmt_date(r.loan_date)}, returned {_fmt_date(r.return_date)})")


def print_drift(drift: List[Dict[str, Any]]) -> None:
    mode = get_output_mode()

    if mode == "json":
        print(json.dumps(drift, ensure_ascii=False))
        return
    if not drift:
        print("Availability matches the loan ledger.")
        return
    for d in drift:
        line = (f"Book {d['book_id']} ({d['title']}): available {d['available_copies']}, "
                f"expected {d['expected_available_copies']}")
        if mode == "rich":
            _console.print(f"[bold red]{line}[/]")
        else:
            print(line)
