from datetime import date

import pytest

from lending import database
from lending.library_service import LibraryService


class FakeClock:
    """Stand-in for date.today that tests can move forward."""

    def __init__(self, today: date) -> None:
        self.current = today

    def __call__(self) -> date:
        return self.current


@pytest.fixture
def clock():
    return FakeClock(date(2024, 3, 15))


@pytest.fixture
def db_file(tmp_path, request):
    # Unique database file per test
    return str(tmp_path / f"test_{request.node.name}.db")


@pytest.fixture
def lib(db_file, clock):
    lib = LibraryService(db_file=db_file, today=clock)
    yield lib
    lib.close()


@pytest.fixture(autouse=True)
def _close_shared_connection():
    yield
    database.close_connection()
