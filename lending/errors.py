"""Exceptions raised by the lending service."""


class LibraryError(Exception):
    """Base class for rejected library operations."""


class BookUnavailableError(LibraryError):
    pass


class OutstandingFineError(LibraryError):
    def __init__(self, balance: float) -> None:
        super().__init__(f"Cannot return book with outstanding fine of ${balance:.2f}")
        self.balance = balance


class InvalidPaymentError(LibraryError, ValueError):
    pass


class LoanNotFoundError(LibraryError, LookupError):
    pass


class LoanOwnershipError(LibraryError):
    pass


class ActiveLoanError(LibraryError):
    pass


class StorageError(Exception):
    """Raised when the SQLite store rejects a statement."""
