from __future__ import annotations


class Book:
    """A single catalog entry that can be lent out."""

    def __init__(self, id: int | None, title: str, author: str, available: bool = True,
                 cover_path: str | None = None) -> None:
        self.id = id
        self.title = title.strip()
        self.author = author.strip()
        self.available = available
        self.cover_path = cover_path

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.title} by {self.author} (ID: {self.id})"

    def __repr__(self) -> str:
        return f"Book(id={self.id!r}, title={self.title!r}, available={self.available!r})"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "available": self.available,
            "cover_path": self.cover_path,
        }

    @staticmethod
    def from_dict(data: dict) -> "Book":
        # SQLite stores the flag as 0/1 and may hand back an empty cover path
        cover_path = data.get("cover_path")
        if isinstance(cover_path, str) and not cover_path.strip():
            cover_path = None

        return Book(
            id=data["id"],
            title=data["title"],
            author=data["author"],
            available=bool(data.get("available", 1)),
            cover_path=cover_path,
        )
