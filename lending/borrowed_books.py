from __future__ import annotations

import sqlite3
from datetime import date, datetime
from typing import Any, List, Optional

from lending.book import Book
from lending.borrowed_book import BorrowedBook
from lending.database import get_db_connection, storage_errors
from lending.repository import Repository

DATE_FORMAT = "%Y-%m-%d"


def format_date(value: Optional[date]) -> Optional[str]:
    return value.strftime(DATE_FORMAT) if value is not None else None


def parse_date(value: Optional[str]) -> Optional[date]:
    """Parses a stored date; malformed text raises ValueError."""
    return datetime.strptime(value, DATE_FORMAT).date() if value is not None else None


class BorrowedBookHandler:
    """SQL for the borrowed_books table.

    Lookups keyed by book only consider the active loan (``return_date IS
    NULL``) unless stated otherwise; a book has at most one.
    """

    def save_borrowed_book(self, member_id: int, borrowed_book: BorrowedBook) -> int:
        row_id = self._execute_update(
            "INSERT INTO borrowed_books (member_id, book_id, borrow_date, due_date, return_date, fine_paid) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            member_id,
            borrowed_book.book.id,
            format_date(borrowed_book.borrow_date),
            format_date(borrowed_book.due_date),
            format_date(borrowed_book.return_date),
            borrowed_book.fine_paid,
        )
        borrowed_book.id = row_id
        return row_id

    def mark_book_as_returned(self, book_id: int, return_date: Optional[date] = None) -> None:
        self._execute_update(
            "UPDATE borrowed_books SET return_date = ? WHERE book_id = ? AND return_date IS NULL",
            format_date(return_date or date.today()), book_id,
        )

    def record_fine_payment(self, book_id: int, fine_paid: float) -> None:
        self._execute_update(
            "UPDATE borrowed_books SET fine_paid = ? WHERE book_id = ? AND return_date IS NULL",
            fine_paid, book_id,
        )

    def is_book_currently_borrowed(self, book_id: int) -> bool:
        row = self._execute_query(
            "SELECT COUNT(*) FROM borrowed_books WHERE book_id = ? AND return_date IS NULL", book_id)
        return row[0] > 0

    def get_current_borrower_id(self, book_id: int) -> Optional[int]:
        row = self._execute_query(
            "SELECT member_id FROM borrowed_books WHERE book_id = ? AND return_date IS NULL LIMIT 1", book_id)
        return row["member_id"] if row else None

    def find_borrower_id_for_book(self, book_id: int) -> Optional[int]:
        """Most recent borrower of the book, whether or not it came back."""
        row = self._execute_query(
            "SELECT member_id FROM borrowed_books WHERE book_id = ? ORDER BY borrow_date DESC, id DESC LIMIT 1",
            book_id)
        return row["member_id"] if row else None

    def get_due_date_for_book(self, book_id: int) -> Optional[date]:
        row = self._execute_query(
            "SELECT due_date FROM borrowed_books WHERE book_id = ? AND return_date IS NULL LIMIT 1", book_id)
        return parse_date(row["due_date"]) if row else None

    def get_borrow_date_for_book(self, book_id: int) -> Optional[date]:
        row = self._execute_query(
            "SELECT borrow_date FROM borrowed_books WHERE book_id = ? AND return_date IS NULL LIMIT 1", book_id)
        return parse_date(row["borrow_date"]) if row else None

    def get_fine_paid_for_book(self, book_id: int) -> float:
        row = self._execute_query(
            "SELECT fine_paid FROM borrowed_books WHERE book_id = ? AND return_date IS NULL LIMIT 1", book_id)
        return float(row["fine_paid"] or 0.0) if row else 0.0

    def has_active_loans_for_member(self, member_id: int) -> bool:
        row = self._execute_query(
            "SELECT COUNT(*) FROM borrowed_books WHERE member_id = ? AND return_date IS NULL", member_id)
        return row[0] > 0

    def count_active_loans(self) -> int:
        return self._execute_query("SELECT COUNT(*) FROM borrowed_books WHERE return_date IS NULL")[0]

    def load_borrowed_books_for_member(self, member_id: int, book_repository: Repository[Book]) -> List[BorrowedBook]:
        """Builds the member's loans, skipping rows whose book is gone from the catalog."""
        with storage_errors("loading borrowed books"):
            with get_db_connection() as conn:
                rows = conn.execute(
                    "SELECT id, book_id, borrow_date, due_date, return_date, fine_paid "
                    "FROM borrowed_books WHERE member_id = ? ORDER BY id",
                    (member_id,),
                ).fetchall()

        catalog = {book.id: book for book in book_repository.find_all()}
        borrowed_books = []
        for row in rows:
            book = catalog.get(row["book_id"])
            if book is None:
                continue
            borrowed_books.append(BorrowedBook(
                book,
                due_date=parse_date(row["due_date"]),
                borrow_date=parse_date(row["borrow_date"]),
                return_date=parse_date(row["return_date"]),
                fine_paid=float(row["fine_paid"] or 0.0),
                id=row["id"],
            ))
        return borrowed_books

    # ------------------------- Helpers ------------------------- #
    def _execute_update(self, sql: str, *params: Any) -> int:
        with storage_errors("executing update"):
            with get_db_connection() as conn:
                cursor = conn.execute(sql, params)
                conn.commit()
                return cursor.lastrowid

    def _execute_query(self, sql: str, *params: Any) -> Optional[sqlite3.Row]:
        with storage_errors("executing query"):
            with get_db_connection() as conn:
                return conn.execute(sql, params).fetchone()
