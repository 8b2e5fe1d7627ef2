import os
import json
from typing import List, Dict, Any
from rich.console import Console
from rich.table import Table
from rich.panel import Panel

# Environment variable to control CLI output mode
# Allowed values: 'plain' (default), 'json', 'rich'
OUTPUT_MODE_ENV = "LIB_CLI_OUTPUT"

_console = Console()


def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode


def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, "plain").lower()


def print_books_result(books: List[Any]) -> None:
    """Print books in the current output mode.
    - plain: 'ID - Title by Author [status]' lines, or 'No books in library.'
    - json: JSON array of book dicts
    - rich: Rich table
    """
    mode = get_output_mode()

    if not books:
        print("No books in library.")
        return

    if mode == "json":
        print(json.dumps([b.to_dict() for b in books], ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="📚 Books", show_lines=True, header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("Title", style="white")
        table.add_column("Author", style="white")
        table.add_column("Status")
        for b in books:
            status = "[green]available[/]" if b.available else "[red]borrowed[/]"
            table.add_row(str(b.id), b.title, b.author, status)
        _console.print(table)
    else:
        for b in books:
            status = "available" if b.available else "borrowed"
            print(f"{b.id} - {b.title} by {b.author} [{status}]")


def print_members_result(members: List[Any]) -> None:
    mode = get_output_mode()

    if not members:
        print("No members registered.")
        return

    if mode == "json":
        payload = [{"id": m.id, "name": m.name, "balance": m.balance} for m in members]
        print(json.dumps(payload, ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="👥 Members", show_lines=True, header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("Name", style="white")
        table.add_column("Balance", justify="right")
        for m in members:
            table.add_row(str(m.id), m.name, f"${m.balance:.2f}")
        _console.print(table)
    else:
        for m in members:
            print(f"{m.id} - {m.name} (balance ${m.balance:.2f})")


def print_report_result(report: Dict[str, Any]) -> None:
    """Print the library report.
    - plain: one 'Label: value' line per count
    - json: JSON object
    - rich: Panel with the counts
    """
    mode = get_output_mode()

    total_books = report.get("total_books", 0)
    total_members = report.get("total_members", 0)
    active_loans = report.get("active_loans", 0)

    if mode == "json":
        print(json.dumps(report, ensure_ascii=False))
    elif mode == "rich":
        content = (f"[bold]Total Books:[/] {total_books}\n"
                   f"[bold]Total Members:[/] {total_members}\n"
                   f"[bold]Active Loans:[/] {active_loans}")
        _console.print(Panel.fit(content, title="📊 Report", border_style="blue"))
    else:
        print(f"Total Books: {total_books}")
        print(f"Total Members: {total_members}")
        print(f"Active Loans: {active_loans}")
