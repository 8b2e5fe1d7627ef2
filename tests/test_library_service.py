from datetime import date, timedelta

import pytest

from lending.book import Book
from lending.errors import (
    ActiveLoanError,
    BookUnavailableError,
    InvalidPaymentError,
    LoanNotFoundError,
    LoanOwnershipError,
    OutstandingFineError,
)
from lending.library_service import LibraryService
from lending.member import Member


@pytest.fixture
def ada(lib):
    return lib.register_member(Member(1, "Ada", "secret"))


@pytest.fixture
def grace(lib):
    return lib.register_member(Member(2, "Grace", "hopper"))


@pytest.fixture
def emma(lib):
    return lib.add_book(Book(10, "Emma", "Jane Austen"))


def test_register_and_add_are_upserts(lib):
    lib.register_member(Member(1, "Ada", "secret"))
    lib.register_member(Member(1, "Ada Lovelace", "secret"))
    lib.add_book(Book(10, "Emma", "Jane Austen"))
    lib.add_book(Book(10, "Emma", "J. Austen"))

    assert [m.name for m in lib.list_members()] == ["Ada Lovelace"]
    assert [b.author for b in lib.list_books()] == ["J. Austen"]


def test_borrow_makes_book_unavailable(lib, ada, emma, clock):
    loan = lib.borrow_book(ada, emma, clock() + timedelta(days=14))

    assert emma.available is False
    assert lib.find_book(10).available is False
    assert loan.borrow_date == clock()
    assert loan.due_date == clock() + timedelta(days=14)
    assert loan.return_date is None
    assert ada.borrowed_books == [loan]
    assert lib.borrowed_books.get_current_borrower_id(10) == 1


def test_borrow_unavailable_book_fails(lib, ada, grace, emma, clock):
    lib.borrow_book(ada, emma, clock() + timedelta(days=14))

    with pytest.raises(BookUnavailableError, match="not available"):
        lib.borrow_book(grace, emma, clock() + timedelta(days=14))
    assert grace.borrowed_books == []
    assert lib.borrowed_books.get_current_borrower_id(10) == 1


def test_return_makes_book_available_again(lib, ada, emma, clock):
    loan = lib.borrow_book(ada, emma, clock() + timedelta(days=14))
    clock.current += timedelta(days=5)

    lib.return_book(ada, loan)

    assert emma.available is True
    assert lib.find_book(10).available is True
    assert loan.return_date == clock()
    assert ada.returned_loans == [loan]
    assert lib.borrowed_books.is_book_currently_borrowed(10) is False


def test_returned_book_can_be_borrowed_again(lib, ada, grace, emma, clock):
    loan = lib.borrow_book(ada, emma, clock() + timedelta(days=14))
    lib.return_book(ada, loan)

    second = lib.borrow_book(grace, emma, clock() + timedelta(days=7))
    assert second.book is emma
    assert lib.borrowed_books.find_borrower_id_for_book(10) == 2


@pytest.mark.parametrize("offset, expected", [
    (timedelta(days=0), 0.0),
    (timedelta(days=5), 0.0),
    (timedelta(days=-1), 0.5),
    (timedelta(days=-3), 1.5),
    (timedelta(days=-10), 5.0),
])
def test_calculate_fine(lib, ada, emma, clock, offset, expected):
    loan = lib.borrow_book(ada, emma, clock() + offset)
    assert lib.calculate_fine(loan) == expected


def test_calculate_fine_for_returned_loan_is_zero(lib, ada, emma, clock):
    loan = lib.borrow_book(ada, emma, clock() + timedelta(days=1))
    lib.return_book(ada, loan)
    clock.current += timedelta(days=30)
    assert lib.calculate_fine(loan) == 0.0


def test_daily_fine_is_configurable(db_file, clock):
    lib = LibraryService(db_file=db_file, daily_fine=1.25, today=clock)
    member = lib.register_member(Member(1, "Ada", "secret"))
    loan = lib.borrow_book(member, lib.add_book(Book(1, "Emma", "Jane Austen")), clock() - timedelta(days=2))
    assert lib.calculate_fine(loan) == 2.5


def test_update_member_fines_sums_overdue_loans(lib, ada, clock):
    first = lib.add_book(Book(1, "Emma", "Jane Austen"))
    second = lib.add_book(Book(2, "Dune", "Frank Herbert"))
    third = lib.add_book(Book(3, "Ulysses", "James Joyce"))
    lib.borrow_book(ada, first, clock() - timedelta(days=2))
    lib.borrow_book(ada, second, clock() - timedelta(days=4))
    lib.borrow_book(ada, third, clock() + timedelta(days=4))

    assert lib.update_member_fines(ada) == 3.0
    assert ada.balance == 3.0
    assert lib.members.find_by_id(1).balance == 3.0


def test_update_member_fines_is_idempotent(lib, ada, emma, clock):
    lib.borrow_book(ada, emma, clock() - timedelta(days=3))

    first = lib.update_member_fines(ada)
    second = lib.update_member_fines(ada)
    assert first == second == 1.5


def test_update_member_fines_follows_the_calendar(lib, ada, emma, clock):
    lib.borrow_book(ada, emma, clock() - timedelta(days=1))
    assert lib.update_member_fines(ada) == 0.5

    clock.current += timedelta(days=2)
    assert lib.update_member_fines(ada) == 1.5


def test_return_blocked_by_outstanding_fine(lib, ada, emma, clock):
    loan = lib.borrow_book(ada, emma, clock() - timedelta(days=3))

    with pytest.raises(OutstandingFineError, match=r"\$1\.50") as excinfo:
        lib.return_book(ada, loan)

    assert excinfo.value.balance == 1.5
    assert loan.return_date is None
    assert emma.available is False
    assert lib.find_book(10).available is False
    assert lib.borrowed_books.is_book_currently_borrowed(10) is True


def test_pay_fine_rejects_non_positive_amounts(lib, ada):
    ada.balance = 2.0
    for amount in (0, -1.0):
        with pytest.raises(InvalidPaymentError, match="must be positive"):
            lib.pay_fine(ada, amount)
    assert ada.balance == 2.0


def test_invalid_payment_is_a_value_error(lib, ada):
    with pytest.raises(ValueError):
        lib.pay_fine(ada, 0)


def test_pay_fine_reduces_balance_by_amount(lib, ada, emma, clock):
    lib.borrow_book(ada, emma, clock() - timedelta(days=6))
    lib.update_member_fines(ada)

    lib.pay_fine(ada, 1.0)

    assert ada.balance == 2.0
    assert lib.members.find_by_id(1).balance == 2.0
    # Partial payments survive the recompute
    assert lib.update_member_fines(ada) == 2.0


def test_overpayment_floors_balance_at_zero(lib, ada, emma, clock):
    lib.borrow_book(ada, emma, clock() - timedelta(days=2))
    lib.update_member_fines(ada)

    lib.pay_fine(ada, 5.0)

    assert ada.balance == 0.0
    assert lib.update_member_fines(ada) == 0.0


def test_payment_goes_to_oldest_due_loan_first(lib, ada, clock):
    newer = lib.borrow_book(ada, lib.add_book(Book(1, "Emma", "Jane Austen")), clock() - timedelta(days=2))
    older = lib.borrow_book(ada, lib.add_book(Book(2, "Dune", "Frank Herbert")), clock() - timedelta(days=4))
    lib.update_member_fines(ada)

    lib.pay_fine(ada, 2.5)

    assert older.fine_paid == 2.0
    assert newer.fine_paid == 0.5
    assert lib.borrowed_books.get_fine_paid_for_book(2) == 2.0


def test_fine_keeps_accruing_after_payment(lib, ada, emma, clock):
    lib.borrow_book(ada, emma, clock() - timedelta(days=2))
    lib.update_member_fines(ada)
    lib.pay_fine(ada, 1.0)

    clock.current += timedelta(days=1)
    assert lib.update_member_fines(ada) == 0.5


def test_clear_fine(lib, ada, emma, clock):
    loan = lib.borrow_book(ada, emma, clock() - timedelta(days=4))
    lib.update_member_fines(ada)

    lib.clear_fine(ada)

    assert ada.balance == 0.0
    assert lib.members.find_by_id(1).balance == 0.0
    lib.return_book(ada, loan)
    assert emma.available is True


def test_borrow_pay_return_end_to_end(lib, ada, emma, clock):
    loan = lib.borrow_book(ada, emma, clock() - timedelta(days=3))
    assert lib.calculate_fine(loan) == 1.5

    with pytest.raises(OutstandingFineError):
        lib.return_book(ada, loan)

    lib.pay_fine(ada, 1.5)
    assert ada.balance == 0.0

    lib.return_book(ada, loan)
    assert emma.available is True
    assert loan.return_date == clock()

    stored = lib.find_member(1).borrowed_books
    assert len(stored) == 1
    assert stored[0].return_date == clock()


def test_return_book_for_uses_member_loans(lib, ada, emma, clock):
    loan = lib.borrow_book(ada, emma, clock() + timedelta(days=7))

    returned = lib.return_book_for(ada, emma)

    assert returned is loan
    assert emma.available is True


def test_return_book_for_rebuilds_loan_from_storage(lib, ada, emma, clock):
    lib.borrow_book(ada, emma, clock() + timedelta(days=7))
    fresh = Member(1, "Ada", "secret")

    returned = lib.return_book_for(fresh, emma)

    assert returned.borrow_date == clock()
    assert returned.due_date == clock() + timedelta(days=7)
    assert returned.return_date == clock()
    assert fresh.borrowed_books == [returned]
    assert lib.borrowed_books.is_book_currently_borrowed(10) is False
    assert lib.find_book(10).available is True


def test_return_book_for_applies_fines_to_stored_loan(lib, ada, emma, clock):
    lib.borrow_book(ada, emma, clock() - timedelta(days=2))
    fresh = Member(1, "Ada", "secret")

    with pytest.raises(OutstandingFineError):
        lib.return_book_for(fresh, emma)
    assert lib.borrowed_books.is_book_currently_borrowed(10) is True


def test_return_book_for_book_not_borrowed(lib, ada, emma):
    with pytest.raises(LoanNotFoundError, match="not currently borrowed"):
        lib.return_book_for(ada, emma)


def test_return_book_for_other_members_loan(lib, ada, grace, emma, clock):
    lib.borrow_book(ada, emma, clock() + timedelta(days=7))

    with pytest.raises(LoanOwnershipError, match="member ID 1"):
        lib.return_book_for(grace, emma)
    assert lib.borrowed_books.get_current_borrower_id(10) == 1


def test_find_member_loads_loans(lib, ada, emma, clock):
    lib.borrow_book(ada, emma, clock() + timedelta(days=7))

    member = lib.find_member(1)
    assert [loan.book.title for loan in member.active_loans] == ["Emma"]
    assert lib.find_member(99) is None


def test_remove_book(lib, emma):
    assert lib.remove_book(10) is True
    assert lib.find_book(10) is None
    assert lib.remove_book(10) is False


def test_remove_book_on_loan_is_refused(lib, ada, emma, clock):
    lib.borrow_book(ada, emma, clock() + timedelta(days=7))

    with pytest.raises(ActiveLoanError):
        lib.remove_book(10)
    assert lib.find_book(10) is not None


def test_remove_member_with_loans_is_refused(lib, ada, emma, clock):
    loan = lib.borrow_book(ada, emma, clock() + timedelta(days=7))

    with pytest.raises(ActiveLoanError):
        lib.remove_member(1)

    lib.return_book(ada, loan)
    assert lib.remove_member(1) is True
    assert lib.list_members() == []


def test_returned_loans_do_not_block_book_removal(lib, ada, emma, clock):
    loan = lib.borrow_book(ada, emma, clock() + timedelta(days=7))
    lib.return_book(ada, loan)

    assert lib.remove_book(10) is True


def test_report_counts_everything(lib, ada, grace, emma, clock):
    lib.add_book(Book(11, "Dune", "Frank Herbert"))
    lib.borrow_book(ada, emma, clock() + timedelta(days=7))

    report = lib.get_report()
    assert report.total_books == 2
    assert report.total_members == 2
    assert report.active_loans == 1
    assert report.to_dict() == {"total_books": 2, "total_members": 2, "active_loans": 1}


def test_state_survives_a_new_service(lib, ada, emma, clock, db_file):
    lib.borrow_book(ada, emma, clock() - timedelta(days=2))
    lib.update_member_fines(ada)
    lib.close()

    reopened = LibraryService(db_file=db_file, today=clock)
    member = reopened.find_member(1)
    assert member.balance == 1.0
    assert reopened.find_book(10).available is False
    assert member.active_loans[0].due_date == clock() - timedelta(days=2)


def test_real_clock_end_to_end(db_file):
    lib = LibraryService(db_file=db_file)
    member = lib.register_member(Member(None, "Ada", "secret"))
    book = lib.add_book(Book(None, "Emma", "Jane Austen"))

    loan = lib.borrow_book(member, book, date.today() - timedelta(days=3))
    assert lib.calculate_fine(loan) == 1.5
    with pytest.raises(OutstandingFineError):
        lib.return_book(member, loan)
    lib.pay_fine(member, 1.5)
    lib.return_book(member, loan)

    assert book.available is True
    assert loan.return_date is not None
