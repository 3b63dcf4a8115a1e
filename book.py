from __future__ import annotations


class Book:
    """A catalog title together with its copy counts."""

    def __init__(self, title: str, author: str, total_copies: int = 1, available_copies: int | None = None,
                 id: int | None = None,
                 # Catalog form fields
                 genre: str | None = None, publisher: str | None = None, edition: str | None = None,
                 year: int | None = None, isbn: str | None = None, barcode: str | None = None) -> None:
        self.id = id
        self.title = title.strip()
        self.author = author.strip()
        self.total_copies = total_copies
        # A freshly registered title has every copy on the shelf
        self.available_copies = total_copies if available_copies is None else available_copies

        self.genre = genre
        self.publisher = publisher
        self.edition = edition
        self.year = year
        self.isbn = isbn
        self.barcode = barcode

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.title} by {self.author} ({self.available_copies}/{self.total_copies} available)"

    def __repr__(self) -> str:  # pragma: no cover
        return f"Book(id={self.id!r}, title={self.title!r}, available={self.available_copies}/{self.total_copies})"

    @property
    def copies_on_loan(self) -> int:
        return self.total_copies - self.available_copies

    def copy(self) -> "Book":
        return Book.from_dict(self.to_dict())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "total_copies": self.total_copies,
            "available_copies": self.available_copies,
            "genre": self.genre,
            "publisher": self.publisher,
            "edition": self.edition,
            "year": self.year,
            "isbn": self.isbn,
            "barcode": self.barcode,
        }

    @staticmethod
    def from_dict(data: dict) -> "Book":
        return Book(
            id=data.get("id"),
            title=data["title"],
            author=data["author"],
            total_copies=data.get("total_copies", 1),
            available_copies=data.get("available_copies"),
            genre=data.get("genre"),
            publisher=data.get("publisher"),
            edition=data.get("edition"),
            year=data.get("year"),
            isbn=data.get("isbn"),
            barcode=data.get("barcode"),
        )
