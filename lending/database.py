import logging
import os
import sqlite3
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from lending.config import settings
from lending.errors import StorageError

logger = logging.getLogger(__name__)

# Database file used by the shared connection. Tests and the CLI switch it
# through configure() before the first statement runs.
DATABASE_FILE = settings.database_file

_connection: Optional[sqlite3.Connection] = None
# Held for the whole time a caller uses the connection, so statements from
# different threads never interleave.
_lock = threading.RLock()

TABLES = (
    """
    CREATE TABLE IF NOT EXISTS books (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        title TEXT NOT NULL,
        author TEXT NOT NULL,
        available INTEGER NOT NULL DEFAULT 1,
        cover_path TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS members (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        password TEXT NOT NULL,
        balance REAL NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS borrowed_books (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        book_id INTEGER NOT NULL,
        member_id INTEGER NOT NULL,
        borrow_date TEXT NOT NULL,
        due_date TEXT NOT NULL,
        return_date TEXT,
        fine_paid REAL NOT NULL DEFAULT 0,
        FOREIGN KEY (book_id) REFERENCES books(id),
        FOREIGN KEY (member_id) REFERENCES members(id)
    )
    """,
)

# Columns missing from databases created by older versions: (table, column, definition)
COLUMN_PATCHES = (
    ("books", "cover_path", "TEXT"),
    ("borrowed_books", "due_date", "TEXT"),
    ("borrowed_books", "fine_paid", "REAL NOT NULL DEFAULT 0"),
)


def _open_connection() -> sqlite3.Connection:
    if DATABASE_FILE != ":memory:":
        directory = os.path.dirname(os.path.abspath(DATABASE_FILE))
        os.makedirs(directory, exist_ok=True)
    conn = sqlite3.connect(DATABASE_FILE, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn


def create_tables(conn: sqlite3.Connection) -> None:
    """Creates the tables if they are missing and adds columns older files lack."""
    cursor = conn.cursor()
    try:
        for statement in TABLES:
            cursor.execute(statement)

        for table, column, definition in COLUMN_PATCHES:
            cursor.execute(f"PRAGMA table_info({table})")
            columns = [row[1] for row in cursor.fetchall()]
            if column not in columns:
                logger.info(f"Adding missing column {table}.{column}")
                cursor.execute(f"ALTER TABLE {table} ADD COLUMN {column} {definition}")

        cursor.execute("CREATE INDEX IF NOT EXISTS idx_borrowed_books_book_id ON borrowed_books(book_id)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_borrowed_books_member_id ON borrowed_books(member_id)")
        conn.commit()
    finally:
        cursor.close()


@contextmanager
def get_db_connection() -> Iterator[sqlite3.Connection]:
    """Yields the shared connection, opening it and creating the schema on first use."""
    global _connection
    with _lock:
        if _connection is None:
            conn = _open_connection()
            try:
                create_tables(conn)
            except sqlite3.Error:
                conn.close()
                raise
            _connection = conn
            logger.debug(f"Opened database {DATABASE_FILE}")
        conn = _connection
        try:
            yield conn
        except Exception:
            # Drop whatever the failed block left uncommitted
            conn.rollback()
            raise


@contextmanager
def storage_errors(action: str) -> Iterator[None]:
    """Logs a failing statement and re-raises it as StorageError."""
    try:
        yield
    except sqlite3.Error as e:
        logger.error(f"Error {action}: {e}")
        raise StorageError(f"Error {action}: {e}") from e


def close_connection() -> None:
    global _connection
    with _lock:
        if _connection is not None:
            _connection.close()
            _connection = None


def configure(db_file: str) -> None:
    """Points the shared connection at another database file."""
    global DATABASE_FILE
    with _lock:
        if db_file != DATABASE_FILE:
            close_connection()
            DATABASE_FILE = db_file


def initialize_database() -> None:
    """Opens the database so the schema exists before the first query."""
    with storage_errors("initializing database"):
        with get_db_connection():
            pass
