from __future__ import annotations

from typing import List

from lending.borrowed_book import BorrowedBook


class Member:
    """A registered borrower and the fine they currently owe."""

    def __init__(self, id: int | None, name: str, password: str, balance: float = 0.0,
                 borrowed_books: List[BorrowedBook] | None = None) -> None:
        self.id = id
        self.name = name.strip()
        self.password = password
        self.balance = balance
        self.borrowed_books: List[BorrowedBook] = borrowed_books or []

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.name} (ID: {self.id})"

    def __repr__(self) -> str:
        return f"Member(id={self.id!r}, name={self.name!r}, balance={self.balance!r})"

    @property
    def active_loans(self) -> List[BorrowedBook]:
        return [bb for bb in self.borrowed_books if not bb.is_returned]

    @property
    def returned_loans(self) -> List[BorrowedBook]:
        return [bb for bb in self.borrowed_books if bb.is_returned]

    def borrow_book(self, borrowed_book: BorrowedBook) -> None:
        self.borrowed_books.append(borrowed_book)

    def return_book(self, borrowed_book: BorrowedBook) -> None:
        """Keeps a returned loan in the list as history, adding it if it was unknown."""
        if borrowed_book not in self.borrowed_books:
            self.borrowed_books.append(borrowed_book)

    def pay_fine(self, amount: float) -> None:
        # Overpayment is not kept as credit
        self.balance = max(0.0, round(self.balance - amount, 2))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "balance": self.balance,
            "borrowed_books": [bb.to_dict() for bb in self.borrowed_books],
        }

    @staticmethod
    def from_dict(data: dict) -> "Member":
        return Member(
            id=data["id"],
            name=data["name"],
            password=data.get("password", ""),
            balance=float(data.get("balance") or 0.0),
        )
