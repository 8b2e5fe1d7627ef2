import logging
from datetime import date, datetime, timedelta
from typing import NoReturn, Optional

import typer
from rich.console import Console

from lending import database
from lending.book import Book
from lending.config import settings
from lending.errors import LibraryError, StorageError
from lending.library_service import LibraryService
from lending.member import Member
from lending.ui_helpers import (
    set_output_mode,
    print_books_result,
    print_members_result,
    print_report_result,
)

APP_NAME = settings.app_name

console = Console()


class LibraryManager:
    """Holds one LibraryService per database file."""
    _instance: Optional[LibraryService] = None
    _db_file_snapshot: Optional[str] = None

    @classmethod
    def get_instance(cls) -> LibraryService:
        current_db = database.DATABASE_FILE
        if cls._instance is not None and current_db != cls._db_file_snapshot:
            # Database file changed (e.g. per-test database), start over
            cls._instance = None
        if cls._instance is None:
            cls._instance = LibraryService()
            cls._db_file_snapshot = current_db
        return cls._instance


def _fail(message: str) -> NoReturn:
    print(f"Error: {message}")
    raise typer.Exit(code=1)


def _load_member(lib: LibraryService, member_id: int) -> Member:
    member = lib.find_member(member_id)
    if member is None:
        _fail(f"Member {member_id} not found.")
    return member


def _load_book(lib: LibraryService, book_id: int) -> Book:
    book = lib.find_book(book_id)
    if book is None:
        _fail(f"Book {book_id} not found.")
    return book


# --- Typer CLI Application ---
app = typer.Typer(help=APP_NAME)


@app.callback()
def _global_options(
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output format: plain | json | rich (default: plain)",
    ),
    db: Optional[str] = typer.Option(None, "--db", help="SQLite database file"),
):
    """Global options for the CLI (output mode, database file)."""
    logging.basicConfig(level=settings.log_level.upper())
    if output:
        set_output_mode(output)
    if db:
        database.configure(db)


@app.command("add-book")
def cli_add_book(
    title: str,
    author: str,
    book_id: Optional[int] = typer.Option(None, "--id", help="Book ID (assigned automatically if omitted)"),
    cover: Optional[str] = typer.Option(None, "--cover", help="Path to a cover image"),
):
    """Add a book to the catalog, or update it if the ID exists."""
    lib = LibraryManager.get_instance()
    book = lib.add_book(Book(book_id, title, author, cover_path=cover))
    print(f"Saved book {book.id}: {book.title} by {book.author}")


@app.command("list-books")
def cli_list_books():
    """List every book in the catalog."""
    print_books_result(LibraryManager.get_instance().list_books())


@app.command("remove-book")
def cli_remove_book(book_id: int):
    """Remove a book that is not on loan."""
    lib = LibraryManager.get_instance()
    try:
        removed = lib.remove_book(book_id)
    except LibraryError as e:
        _fail(str(e))
    if removed:
        print(f"Book {book_id} has been removed.")
    else:
        print(f"Book {book_id} not found.")


@app.command("register")
def cli_register(
    name: str,
    password: str,
    member_id: Optional[int] = typer.Option(None, "--id", help="Member ID (assigned automatically if omitted)"),
):
    """Register a member."""
    lib = LibraryManager.get_instance()
    member = lib.register_member(Member(member_id, name, password))
    print(f"Registered member {member.id}: {member.name}")


@app.command("list-members")
def cli_list_members():
    """List registered members and their balances."""
    print_members_result(LibraryManager.get_instance().list_members())


@app.command("remove-member")
def cli_remove_member(member_id: int):
    """Remove a member with no books on loan."""
    lib = LibraryManager.get_instance()
    try:
        removed = lib.remove_member(member_id)
    except LibraryError as e:
        _fail(str(e))
    if removed:
        print(f"Member {member_id} has been removed.")
    else:
        print(f"Member {member_id} not found.")


@app.command("borrow")
def cli_borrow(
    member_id: int,
    book_id: int,
    days: int = typer.Option(settings.loan_days, "--days", "-d", help="Loan length in days"),
    due: Optional[datetime] = typer.Option(None, "--due", formats=["%Y-%m-%d"], help="Explicit due date"),
):
    """Lend a book to a member."""
    lib = LibraryManager.get_instance()
    member = _load_member(lib, member_id)
    book = _load_book(lib, book_id)
    due_date = due.date() if due else date.today() + timedelta(days=days)
    try:
        loan = lib.borrow_book(member, book, due_date)
    except LibraryError as e:
        _fail(str(e))
    print(f"{member.name} borrowed '{book.title}', due {loan.due_date.isoformat()}")


@app.command("return")
def cli_return(member_id: int, book_id: int):
    """Take a book back from a member."""
    lib = LibraryManager.get_instance()
    member = _load_member(lib, member_id)
    book = _load_book(lib, book_id)
    try:
        lib.return_book_for(member, book)
    except LibraryError as e:
        _fail(str(e))
    print(f"'{book.title}' returned by {member.name}")


@app.command("fines")
def cli_fines(member_id: int):
    """Recalculate and show what a member owes."""
    lib = LibraryManager.get_instance()
    member = _load_member(lib, member_id)
    balance = lib.update_member_fines(member)
    for loan in member.active_loans:
        owed = lib.outstanding_fine(loan)
        if owed > 0:
            print(f"{loan.book.title} (due {loan.due_date.isoformat()}): ${owed:.2f}")
    print(f"Balance for {member.name}: ${balance:.2f}")


@app.command("pay")
def cli_pay(member_id: int, amount: float):
    """Record a fine payment."""
    lib = LibraryManager.get_instance()
    member = _load_member(lib, member_id)
    lib.update_member_fines(member)
    try:
        lib.pay_fine(member, amount)
    except LibraryError as e:
        _fail(str(e))
    print(f"Payment of ${amount:.2f} recorded. Balance: ${member.balance:.2f}")


@app.command("clear-fine")
def cli_clear_fine(member_id: int):
    """Waive a member's fine (librarian override)."""
    lib = LibraryManager.get_instance()
    member = _load_member(lib, member_id)
    lib.clear_fine(member)
    print(f"Fine cleared for {member.name}")


@app.command("report")
def cli_report():
    """Show catalog, membership and loan counts."""
    print_report_result(LibraryManager.get_instance().get_report().to_dict())


def main() -> None:
    try:
        app()
    except StorageError as e:
        console.print(f"[bold red]Database error: {e}[/]")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
