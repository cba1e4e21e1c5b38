import re
from datetime import date, datetime

from pydantic import Field, field_validator

from library_api.schemas.common import CamelModel

MAX_TITLE_LENGTH = 500
MAX_AUTHOR_LENGTH = 255
ISBN_PATTERN = re.compile(r"^[0-9X-]{10,17}$")


def normalize_isbn(value: str) -> str:
    """Canonical form used for every ISBN comparison and write."""
    return value.strip().upper()


def check_title(value: str) -> str | None:
    if not value or not value.strip():
        return "Title is required"
    if len(value) > MAX_TITLE_LENGTH:
        return f"Title must be at most {MAX_TITLE_LENGTH} characters"
    return None


def check_author(value: str) -> str | None:
    if not value or not value.strip():
        return "Author is required"
    if len(value) > MAX_AUTHOR_LENGTH:
        return f"Author must be at most {MAX_AUTHOR_LENGTH} characters"
    return None


def check_isbn(value: str) -> str | None:
    if not value or not value.strip():
        return "ISBN is required"
    if not ISBN_PATTERN.match(normalize_isbn(value)):
        return "ISBN must be 10-17 characters (numbers, X, or hyphens)"
    return None


def _strip(value):
    return value.strip() if isinstance(value, str) else value


def _raise_if(message: str | None, value):
    if message:
        raise ValueError(message)
    return value


class BookCreate(CamelModel):
    title: str
    author: str
    isbn: str = Field(..., examples=["978-0-13-235088-4"])
    published_date: date = Field(..., examples=["2008-08-01"])

    @field_validator("title", "author", mode="before")
    @classmethod
    def strip_text(cls, v):
        return _strip(v)

    @field_validator("isbn", mode="before")
    @classmethod
    def normalize(cls, v):
        return normalize_isbn(v) if isinstance(v, str) else v

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        return _raise_if(check_title(v), v)

    @field_validator("author")
    @classmethod
    def validate_author(cls, v: str) -> str:
        return _raise_if(check_author(v), v)

    @field_validator("isbn")
    @classmethod
    def validate_isbn(cls, v: str) -> str:
        return _raise_if(check_isbn(v), v)


class BookUpdate(CamelModel):
    """Partial update: only non-null fields are merged into the stored book."""

    title: str | None = None
    author: str | None = None
    isbn: str | None = None
    published_date: date | None = None

    @field_validator("title", "author", mode="before")
    @classmethod
    def strip_text(cls, v):
        return _strip(v)

    @field_validator("isbn", mode="before")
    @classmethod
    def normalize(cls, v):
        return normalize_isbn(v) if isinstance(v, str) else v

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str | None) -> str | None:
        return v if v is None else _raise_if(check_title(v), v)

    @field_validator("author")
    @classmethod
    def validate_author(cls, v: str | None) -> str | None:
        return v if v is None else _raise_if(check_author(v), v)

    @field_validator("isbn")
    @classmethod
    def validate_isbn(cls, v: str | None) -> str | None:
        return v if v is None else _raise_if(check_isbn(v), v)


class BookResponse(CamelModel):
    id: int
    title: str
    author: str
    isbn: str
    published_date: date
    created_at: datetime
    updated_at: datetime


class BookSummary(CamelModel):
    id: int
    title: str
    author: str
    published_date: date


class LibraryStats(CamelModel):
    total_books: int
    unique_authors_count: int
    unique_authors: list[str]
    books_by_year: dict[int, int]

    # Omitted from the response when the library is empty
    oldest_book: BookSummary | None = None
    newest_book: BookSummary | None = None
