from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, List, Optional

from lending import database
from lending.book import Book
from lending.borrowed_book import BorrowedBook
from lending.borrowed_books import BorrowedBookHandler
from lending.config import settings
from lending.errors import (
    ActiveLoanError,
    BookUnavailableError,
    InvalidPaymentError,
    LoanNotFoundError,
    LoanOwnershipError,
    OutstandingFineError,
)
from lending.member import Member
from lending.repository import Repository, book_repository, member_repository

logger = logging.getLogger(__name__)


@dataclass
class LibraryReport:
    total_books: int
    total_members: int
    active_loans: int = 0

    def to_dict(self) -> dict:
        return {
            "total_books": self.total_books,
            "total_members": self.total_members,
            "active_loans": self.active_loans,
        }


class LibraryService:
    """Circulation rules over the catalog, the members and their loans.

    In-memory ``Member``/``Book``/``BorrowedBook`` objects passed in by the
    caller are updated in place and then written back to the store.
    """

    def __init__(self, db_file: Optional[str] = None,
                 books: Optional[Repository[Book]] = None,
                 members: Optional[Repository[Member]] = None,
                 borrowed_books: Optional[BorrowedBookHandler] = None,
                 daily_fine: Optional[float] = None,
                 today: Callable[[], date] = date.today) -> None:
        if db_file:
            database.configure(db_file)
        database.initialize_database()

        self.books = books or book_repository()
        self.members = members or member_repository()
        self.borrowed_books = borrowed_books or BorrowedBookHandler()
        self.daily_fine = settings.daily_fine if daily_fine is None else daily_fine
        self.today = today

    # ------------------------- Catalog & membership ------------------------- #
    def register_member(self, member: Member) -> Member:
        self.members.save([member])
        logger.info(f"Registered member {member.id} ({member.name})")
        return member

    def add_book(self, book: Book) -> Book:
        self.books.save([book])
        logger.info(f"Saved book {book.id} ({book.title})")
        return book

    def remove_book(self, book_id: int) -> bool:
        if self.borrowed_books.is_book_currently_borrowed(book_id):
            raise ActiveLoanError(f"Book {book_id} is currently borrowed and cannot be removed.")
        return self.books.delete_data(book_id)

    def remove_member(self, member_id: int) -> bool:
        if self.borrowed_books.has_active_loans_for_member(member_id):
            raise ActiveLoanError(f"Member {member_id} still has borrowed books and cannot be removed.")
        return self.members.delete_data(member_id)

    def list_books(self) -> List[Book]:
        return self.books.find_all()

    def list_members(self) -> List[Member]:
        return self.members.find_all()

    def find_book(self, book_id: int) -> Optional[Book]:
        return self.books.find_by_id(book_id)

    def find_member(self, member_id: int) -> Optional[Member]:
        """Loads a member together with every loan on record."""
        member = self.members.find_by_id(member_id)
        if member is not None:
            self.load_loans(member)
        return member

    def load_loans(self, member: Member) -> List[BorrowedBook]:
        member.borrowed_books = self.borrowed_books.load_borrowed_books_for_member(member.id, self.books)
        return member.borrowed_books

    # ------------------------- Borrowing ------------------------- #
    def borrow_book(self, member: Member, book: Book, due_date: date) -> BorrowedBook:
        if not book.available:
            logger.warning(f"Member {member.id} tried to borrow unavailable book {book.id}")
            raise BookUnavailableError("Book is not available for borrowing.")

        borrowed_book = BorrowedBook(book, due_date=due_date, borrow_date=self.today())
        book.available = False
        member.borrow_book(borrowed_book)

        self.borrowed_books.save_borrowed_book(member.id, borrowed_book)
        self.members.save([member])
        self.books.save([book])
        logger.info(f"Member {member.id} borrowed book {book.id}, due {due_date}")
        return borrowed_book

    def return_book(self, member: Member, borrowed_book: BorrowedBook) -> None:
        """Returns a loan. Refused while the member owes anything."""
        self.update_member_fines(member)
        if member.balance > 0:
            logger.warning(f"Return of book {borrowed_book.book.id} refused, member {member.id} owes {member.balance:.2f}")
            raise OutstandingFineError(member.balance)

        borrowed_book.mark_returned(self.today())
        member.return_book(borrowed_book)
        borrowed_book.book.available = True

        self.borrowed_books.mark_book_as_returned(borrowed_book.book.id, borrowed_book.return_date)
        self.members.save([member])
        self.books.save([borrowed_book.book])
        logger.info(f"Member {member.id} returned book {borrowed_book.book.id}")

    def return_book_for(self, member: Member, book: Book) -> BorrowedBook:
        """Returns ``book`` for ``member``, finding the loan in memory or in the store."""
        borrowed = next(
            (bb for bb in member.borrowed_books if bb.book.id == book.id and not bb.is_returned),
            None,
        )

        if borrowed is None:
            borrower_id = self.borrowed_books.get_current_borrower_id(book.id)
            if borrower_id is None:
                raise LoanNotFoundError("This book is not currently borrowed.")
            if borrower_id != member.id:
                raise LoanOwnershipError(
                    f"Member did not borrow this book. Book is borrowed by member ID {borrower_id}")

            borrowed = BorrowedBook(
                book,
                due_date=self.borrowed_books.get_due_date_for_book(book.id),
                borrow_date=self.borrowed_books.get_borrow_date_for_book(book.id),
                fine_paid=self.borrowed_books.get_fine_paid_for_book(book.id),
            )
            member.borrow_book(borrowed)

        self.return_book(member, borrowed)
        return borrowed

    # ------------------------- Fines ------------------------- #
    def calculate_fine(self, borrowed_book: BorrowedBook) -> float:
        """Fine accrued so far: a fixed amount per day past the due date."""
        today = self.today()
        if not borrowed_book.is_overdue(today):
            return 0.0
        return borrowed_book.days_overdue(today) * self.daily_fine

    def outstanding_fine(self, borrowed_book: BorrowedBook) -> float:
        return max(0.0, round(self.calculate_fine(borrowed_book) - borrowed_book.fine_paid, 2))

    def update_member_fines(self, member: Member) -> float:
        """Recomputes the member's balance from their overdue loans.

        This replaces the balance rather than adding to it, so calling it
        twice on the same day gives the same result.
        """
        today = self.today()
        total = sum(self.outstanding_fine(bb) for bb in member.borrowed_books if bb.is_overdue(today))
        member.balance = round(total, 2)
        self.members.save([member])
        return member.balance

    def clear_fine(self, member: Member) -> None:
        """Librarian override: waives everything the member owes."""
        for bb in self._overdue_loans(member):
            bb.fine_paid = self.calculate_fine(bb)
            self.borrowed_books.record_fine_payment(bb.book.id, bb.fine_paid)
        member.balance = 0.0
        self.members.save([member])
        logger.info(f"Fine cleared for member {member.id}")

    def pay_fine(self, member: Member, amount: float) -> None:
        if amount <= 0:
            raise InvalidPaymentError("Payment amount must be positive.")

        member.pay_fine(amount)

        remaining = amount
        for bb in sorted(self._overdue_loans(member), key=lambda bb: bb.due_date):
            if remaining <= 0:
                break
            applied = min(remaining, self.outstanding_fine(bb))
            if applied <= 0:
                continue
            bb.fine_paid = round(bb.fine_paid + applied, 2)
            remaining = round(remaining - applied, 2)
            self.borrowed_books.record_fine_payment(bb.book.id, bb.fine_paid)

        self.members.save([member])
        logger.info(f"Member {member.id} paid {amount:.2f}, balance now {member.balance:.2f}")

    def _overdue_loans(self, member: Member) -> List[BorrowedBook]:
        today = self.today()
        return [bb for bb in member.borrowed_books if bb.is_overdue(today)]

    # ------------------------- Reporting ------------------------- #
    def get_report(self) -> LibraryReport:
        return LibraryReport(
            total_books=self.books.count(),
            total_members=self.members.count(),
            active_loans=self.borrowed_books.count_active_loans(),
        )

    def close(self) -> None:
        database.close_connection()
