import logging
import subprocess
import sys
from typing import Optional

import typer

from book import Book
from config import settings
from errors import LibraryError
from library import Library
from member import Member
from ui_helpers import print_active_loans, print_drift, print_history, set_output_mode

logger = logging.getLogger(__name__)

_library: Optional[Library] = None


def get_library() -> Library:
    """Library used by every command; tests replace it with an in-memory one."""
    global _library
    if _library is None:
        _library = Library()
    return _library


# --- Typer CLI application ---
app = typer.Typer(help="School library circulation desk")


@app.callback()
def _global_options(
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output format: plain | json | rich (default: plain)",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
):
    """Global CLI options."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING)
    if output:
        set_output_mode(output)


@app.command("add-book")
def cli_add_book(
    title: str,
    author: str,
    copies: int = typer.Option(1, "--copies", "-c", help="Number of copies owned"),
    genre: Optional[str] = typer.Option(None, help="Genre"),
    isbn: Optional[str] = typer.Option(None, help="ISBN"),
):
    """Register a title in the catalog."""
    if copies <= 0:
        print("Error: copies must be a positive integer.")
        return
    try:
        book = get_library().add_book(Book(title=title, author=author, total_copies=copies, genre=genre, isbn=isbn))
    except LibraryError as e:
        print(f"Error: {e}")
        return
    print(f'Book "{book.title}" registered with id {book.id} ({book.total_copies} copies).')


@app.command("add-member")
def cli_add_member(
    membership_id: str,
    name: str,
    email: Optional[str] = typer.Option(None, help="E-mail address"),
    phone: Optional[str] = typer.Option(None, help="Phone number"),
    cpf: Optional[str] = typer.Option(None, help="CPF"),
    kind: Optional[str] = typer.Option(None, help="Member category, e.g. student or teacher"),
):
    """Register a library member."""
    try:
        member = get_library().register_member(
            Member(membership_id=membership_id, name=name, email=email, phone=phone, cpf=cpf, kind=kind)
        )
    except LibraryError as e:
        print(f"Error: {e}")
        return
    print(f'Member "{member.name}" (membership id {member.membership_id}) registered.')


@app.command("copies")
def cli_copies(book_id: int, total: int):
    """Change how many copies of a title the library owns."""
    try:
        book = get_library().set_total_copies(book_id, total)
    except LibraryError as e:
        print(f"Error: {e}")
        return
    print(f"Book {book.id}: {book.available_copies}/{book.total_copies} copies available.")


@app.command("lend")
def cli_lend(
    book_id: int,
    membership_id: str,
    note: Optional[str] = typer.Option(None, "--note", "-n", help="Free-text note kept with the loan"),
):
    """Lend one copy of a book to a member."""
    try:
        record = get_library().ledger.create_loan(book_id, membership_id, note)
    except LibraryError as e:
        print(f"Error: {e}")
        return
    print(f"Loan {record.id} created. Due {record.due_date.strftime('%d/%m/%Y')}.")


@app.command("return")
def cli_return(loan_id: int):
    """Register the return of a loan."""
    try:
        get_library().ledger.return_loan(loan_id)
    except LibraryError as e:
        print(f"Error: {e}")
        return
    print(f"Return of loan {loan_id} registered.")


@app.command("active")
def cli_active():
    """List active loans, flagging overdue ones."""
    print_active_loans(list(get_library().ledger.list_active_loans()))


@app.command("overdue")
def cli_overdue():
    """List overdue loans only."""
    print_active_loans(list(get_library().ledger.list_overdue_loans()), empty_message="No overdue loans.")


@app.command("history")
def cli_history(
    book_id: Optional[int] = typer.Option(None, "--book", help="Only loans of this book"),
    membership_id: Optional[str] = typer.Option(None, "--member", help="Only loans of this member"),
):
    """Show every loan ever made."""
    try:
        records = get_library().ledger.loan_history(book_id=book_id, membership_id=membership_id)
    except LibraryError as e:
        print(f"Error: {e}")
        return
    print_history(records)


@app.command("audit")
def cli_audit():
    """Check stored availability against the loan ledger."""
    print_drift(get_library().availability_drift())


@app.command("serve")
def cli_serve(
    host: str = typer.Option(settings.api_host, help="Bind address"),
    port: int = typer.Option(settings.api_port, help="Port"),
):
    """Start the REST API with uvicorn."""
    print(f"Starting API on http://{host}:{port}")
    logger.debug(f"Database file: {settings.database_file}")
    subprocess.run([sys.executable, "-m", "uvicorn", "api:app", "--host", host, "--port", str(port)])


if __name__ == "__main__":
    app()
