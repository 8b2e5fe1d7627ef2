from __future__ import annotations

from datetime import date
from typing import Optional

from lending.book import Book


class BorrowedBook:
    """One loan of a book.

    A loan is active while ``return_date`` is None. Returning it stamps the
    date once; a returned loan never changes again.
    """

    def __init__(self, book: Book, due_date: date, borrow_date: Optional[date] = None,
                 return_date: Optional[date] = None, fine_paid: float = 0.0,
                 id: Optional[int] = None) -> None:
        self.book = book
        self.borrow_date = borrow_date or date.today()
        self._due_date = due_date
        self.return_date = return_date
        self.fine_paid = fine_paid
        self.id = id

    @property
    def due_date(self) -> date:
        return self._due_date

    @property
    def is_returned(self) -> bool:
        return self.return_date is not None

    def is_overdue(self, today: Optional[date] = None) -> bool:
        today = today or date.today()
        return self.return_date is None and today > self._due_date

    def days_overdue(self, today: Optional[date] = None) -> int:
        today = today or date.today()
        if not self.is_overdue(today):
            return 0
        return (today - self._due_date).days

    def mark_returned(self, when: Optional[date] = None) -> None:
        if self.return_date is not None:
            raise ValueError(f"Loan of book {self.book.id} was already returned on {self.return_date}.")
        self.return_date = when or date.today()

    def __repr__(self) -> str:
        return (f"BorrowedBook(book_id={self.book.id!r}, borrow_date={self.borrow_date!r}, "
                f"due_date={self._due_date!r}, return_date={self.return_date!r})")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "book_id": self.book.id,
            "title": self.book.title,
            "borrow_date": self.borrow_date.isoformat(),
            "due_date": self._due_date.isoformat(),
            "return_date": self.return_date.isoformat() if self.return_date else None,
            "fine_paid": self.fine_paid,
        }
