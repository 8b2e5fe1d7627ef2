from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import Any, Callable, Generic, Iterable, List, Optional, Sequence, TypeVar

from lending.book import Book
from lending.database import get_db_connection, storage_errors
from lending.member import Member

T = TypeVar("T")


@dataclass(frozen=True)
class EntityCodec(Generic[T]):
    """How one entity type maps onto its table.

    Entities must expose an ``id`` attribute. ``insert_params`` receives an
    entity whose id may be None, in which case SQLite assigns one.
    """
    table: str
    insert_sql: str
    update_sql: str
    from_row: Callable[[sqlite3.Row], T]
    insert_params: Callable[[T], Sequence[Any]]
    update_params: Callable[[T], Sequence[Any]]


class Repository(Generic[T]):
    """Id-keyed CRUD over a single table."""

    def __init__(self, codec: EntityCodec[T]) -> None:
        self.codec = codec

    @property
    def table(self) -> str:
        return self.codec.table

    def save(self, entities: Iterable[T]) -> None:
        """Upserts each entity by id, committing one statement at a time."""
        with storage_errors(f"saving {self.table}"):
            with get_db_connection() as conn:
                for entity in entities:
                    cursor = conn.cursor()
                    try:
                        if entity.id is not None and self._exists(cursor, entity.id):
                            cursor.execute(self.codec.update_sql, self.codec.update_params(entity))
                        else:
                            cursor.execute(self.codec.insert_sql, self.codec.insert_params(entity))
                            if entity.id is None:
                                entity.id = cursor.lastrowid
                        conn.commit()
                    finally:
                        cursor.close()

    def find_all(self) -> List[T]:
        with storage_errors(f"reading {self.table}"):
            with get_db_connection() as conn:
                rows = conn.execute(f"SELECT * FROM {self.table} ORDER BY id").fetchall()
                return [self.codec.from_row(row) for row in rows]

    def find_by_id(self, entity_id: int) -> Optional[T]:
        with storage_errors(f"reading {self.table}"):
            with get_db_connection() as conn:
                row = conn.execute(f"SELECT * FROM {self.table} WHERE id = ?", (entity_id,)).fetchone()
                return self.codec.from_row(row) if row else None

    def count(self) -> int:
        with storage_errors(f"counting {self.table}"):
            with get_db_connection() as conn:
                return conn.execute(f"SELECT COUNT(*) FROM {self.table}").fetchone()[0]

    def delete_data(self, entity_id: int) -> bool:
        """Deletes by id. Returns False when there was nothing to delete."""
        with storage_errors(f"deleting {self.table}"):
            with get_db_connection() as conn:
                cursor = conn.execute(f"DELETE FROM {self.table} WHERE id = ?", (entity_id,))
                conn.commit()
                return cursor.rowcount > 0

    def _exists(self, cursor: sqlite3.Cursor, entity_id: int) -> bool:
        cursor.execute(f"SELECT COUNT(*) FROM {self.table} WHERE id = ?", (entity_id,))
        return cursor.fetchone()[0] > 0


# ------------------------- Entity codecs ------------------------- #
BOOKS: EntityCodec[Book] = EntityCodec(
    table="books",
    insert_sql="INSERT INTO books (id, title, author, available, cover_path) VALUES (?, ?, ?, ?, ?)",
    update_sql="UPDATE books SET title = ?, author = ?, available = ?, cover_path = ? WHERE id = ?",
    from_row=lambda row: Book.from_dict(dict(row)),
    insert_params=lambda b: (b.id, b.title, b.author, 1 if b.available else 0, b.cover_path),
    update_params=lambda b: (b.title, b.author, 1 if b.available else 0, b.cover_path, b.id),
)

MEMBERS: EntityCodec[Member] = EntityCodec(
    table="members",
    insert_sql="INSERT INTO members (id, name, password, balance) VALUES (?, ?, ?, ?)",
    update_sql="UPDATE members SET name = ?, password = ?, balance = ? WHERE id = ?",
    from_row=lambda row: Member.from_dict(dict(row)),
    insert_params=lambda m: (m.id, m.name, m.password, m.balance),
    update_params=lambda m: (m.name, m.password, m.balance, m.id),
)


def book_repository() -> Repository[Book]:
    return Repository(BOOKS)


def member_repository() -> Repository[Member]:
    return Repository(MEMBERS)
