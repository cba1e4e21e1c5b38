from datetime import date, datetime, timezone

from sqlalchemy import Date, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from library_api.core.database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp, as stored in the timestamp columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Book(Base):
    """A single book in the library catalog."""

    __tablename__ = "books"

    id: Mapped[int] = mapped_column(primary_key=True)

    title: Mapped[str] = mapped_column(String(500), index=True)
    author: Mapped[str] = mapped_column(String(255), index=True)

    # Stored trimmed and uppercased, see book_service.prepare_for_save
    isbn: Mapped[str] = mapped_column(String(20), unique=True, index=True)

    published_date: Mapped[date] = mapped_column(Date, index=True)

    # Set explicitly by the service layer
    created_at: Mapped[datetime] = mapped_column(DateTime)
    updated_at: Mapped[datetime] = mapped_column(DateTime)

    def __repr__(self) -> str:
        return f"<Book id={self.id} isbn={self.isbn!r} title={self.title!r}>"
