import math
from datetime import date

from sqlalchemy import extract, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Query, Session

from library_api.core.config import get_settings
from library_api.core.exceptions import (
    BusinessRuleError,
    DuplicateResourceError,
    FieldValidationError,
    ResourceNotFoundError,
)
from library_api.core.logging import get_logger
from library_api.models.book import Book, utcnow
from library_api.schemas.book import (
    BookCreate,
    BookResponse,
    BookSummary,
    BookUpdate,
    LibraryStats,
    normalize_isbn,
)
from library_api.schemas.common import PageResponse

logger = get_logger(__name__)

FUTURE_DATE_MESSAGE = "Published date cannot be in the future"

# Accepts both the camelCase names the client sends and column names
SORTABLE_FIELDS = {
    "id": Book.id,
    "title": Book.title,
    "author": Book.author,
    "isbn": Book.isbn,
    "publishedDate": Book.published_date,
    "published_date": Book.published_date,
    "createdAt": Book.created_at,
    "created_at": Book.created_at,
    "updatedAt": Book.updated_at,
    "updated_at": Book.updated_at,
}


def clamp_page(page: int, size: int | None) -> tuple[int, int]:
    """Clamp paging parameters: page >= 0, size in (0, MAX_PAGE_SIZE].

    A missing or out-of-range size becomes DEFAULT_PAGE_SIZE.
    """
    settings = get_settings()
    if page < 0:
        page = 0
    if size is None or size <= 0 or size > settings.MAX_PAGE_SIZE:
        size = settings.DEFAULT_PAGE_SIZE
    return page, size


def is_future_date(value: date) -> bool:
    return value > date.today()


def validate_published_date(value: date) -> None:
    """Reject published dates after today."""
    if is_future_date(value):
        raise BusinessRuleError(
            FUTURE_DATE_MESSAGE,
            details={
                "providedDate": value.isoformat(),
                "currentDate": date.today().isoformat(),
            },
        )


def isbn_exists(db: Session, isbn: str) -> bool:
    return (
        db.query(Book.id).filter(Book.isbn == normalize_isbn(isbn)).first()
        is not None
    )


def new_book(title: str, author: str, isbn: str, published_date: date) -> Book:
    """Build a new, normalized Book with both timestamps set."""
    now = utcnow()
    book = Book(
        title=title,
        author=author,
        isbn=isbn,
        published_date=published_date,
        created_at=now,
        updated_at=now,
    )
    return prepare_for_save(book)


def prepare_for_save(book: Book) -> Book:
    """Normalize fields and refresh ``updated_at``; called before every write."""
    book.title = book.title.strip()
    book.author = book.author.strip()
    book.isbn = normalize_isbn(book.isbn)
    book.updated_at = utcnow()
    if book.created_at is None:
        book.created_at = book.updated_at
    return book


def _commit_or_conflict(db: Session, isbn: str) -> None:
    """Commit, translating a unique-index race into a conflict."""
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"Unique constraint rejected ISBN {isbn}: {e.orig}")
        raise DuplicateResourceError("ISBN", isbn) from e


def _get_book_or_raise(db: Session, book_id: int) -> Book:
    book = db.query(Book).filter(Book.id == book_id).first()
    if not book:
        logger.warning(f"Book not found with ID: {book_id}")
        raise ResourceNotFoundError("Book", book_id)
    return book


def _to_page(query: Query, page: int, size: int) -> PageResponse[BookResponse]:
    total = query.order_by(None).count()
    books = query.offset(page * size).limit(size).all()
    total_pages = math.ceil(total / size) if total else 0

    return PageResponse[BookResponse](
        content=[BookResponse.model_validate(book) for book in books],
        total_elements=total,
        total_pages=total_pages,
        page=page,
        size=size,
        number_of_elements=len(books),
        first=page == 0,
        last=page >= total_pages - 1,
    )


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def create_book(db: Session, data: BookCreate) -> BookResponse:
    """Create a book after checking the date rule and ISBN uniqueness."""
    logger.info(f"Creating book: {data.title}")

    validate_published_date(data.published_date)

    if isbn_exists(db, data.isbn):
        logger.warning(f"Attempted to create book with duplicate ISBN: {data.isbn}")
        raise DuplicateResourceError("ISBN", normalize_isbn(data.isbn))

    book = new_book(data.title, data.author, data.isbn, data.published_date)
    db.add(book)
    _commit_or_conflict(db, book.isbn)
    db.refresh(book)

    logger.info(f"Book created successfully with ID: {book.id}")
    return BookResponse.model_validate(book)


def get_book(db: Session, book_id: int) -> BookResponse:
    """Get book details by ID."""
    return BookResponse.model_validate(_get_book_or_raise(db, book_id))


def list_books(
    db: Session,
    page: int = 0,
    size: int | None = None,
    sort_by: str = "id",
    direction: str = "ASC",
) -> PageResponse[BookResponse]:
    """List books one page at a time, sorted by any book field."""
    page, size = clamp_page(page, size)

    column = SORTABLE_FIELDS.get(sort_by)
    if column is None:
        raise FieldValidationError(
            f"Cannot sort by '{sort_by}'",
            details={"sortBy": f"Must be one of: {', '.join(sorted(SORTABLE_FIELDS))}"},
        )

    order = column.desc() if direction.upper() == "DESC" else column.asc()
    # Secondary key keeps pages stable when the sort column has ties
    query = db.query(Book).order_by(order, Book.id.asc())

    return _to_page(query, page, size)


def search_books(
    db: Session,
    keyword: str | None,
    page: int = 0,
    size: int | None = None,
) -> PageResponse[BookResponse]:
    """Case-insensitive substring search over title, author and ISBN."""
    if keyword is None or not keyword.strip():
        return list_books(db, page, size, "id", "ASC")

    page, size = clamp_page(page, size)
    term = f"%{_escape_like(keyword.strip())}%"

    query = (
        db.query(Book)
        .filter(
            or_(
                Book.title.ilike(term, escape="\\"),
                Book.author.ilike(term, escape="\\"),
                Book.isbn.ilike(term, escape="\\"),
            )
        )
        .order_by(Book.id.asc())
    )

    return _to_page(query, page, size)


def update_book(db: Session, book_id: int, data: BookUpdate) -> BookResponse:
    """Merge the non-null fields of ``data`` into an existing book."""
    logger.info(f"Updating book with ID: {book_id}")

    book = _get_book_or_raise(db, book_id)

    if data.published_date is not None:
        validate_published_date(data.published_date)

    if data.isbn is not None:
        new_isbn = normalize_isbn(data.isbn)
        if new_isbn != normalize_isbn(book.isbn) and isbn_exists(db, new_isbn):
            logger.warning(f"Attempted to update book with duplicate ISBN: {new_isbn}")
            raise DuplicateResourceError("ISBN", new_isbn)
        book.isbn = new_isbn

    if data.title is not None:
        book.title = data.title
    if data.author is not None:
        book.author = data.author
    if data.published_date is not None:
        book.published_date = data.published_date

    prepare_for_save(book)
    _commit_or_conflict(db, book.isbn)
    db.refresh(book)

    logger.info(f"Book updated successfully: {book.title}")
    return BookResponse.model_validate(book)


def delete_book(db: Session, book_id: int) -> None:
    """Delete a book by ID."""
    logger.info(f"Deleting book with ID: {book_id}")

    book = _get_book_or_raise(db, book_id)
    db.delete(book)
    db.commit()

    logger.info(f"Book deleted successfully with ID: {book_id}")


def get_library_stats(db: Session) -> LibraryStats:
    """Totals, distinct authors, a year histogram and the oldest/newest books."""
    total_books = db.query(func.count(Book.id)).scalar() or 0

    unique_authors = [
        author for (author,) in db.query(Book.author).distinct().order_by(Book.author).all()
    ]

    year = extract("year", Book.published_date)
    books_by_year = {
        int(row_year): count
        for row_year, count in (
            db.query(year, func.count(Book.id)).group_by(year).order_by(year.desc()).all()
        )
    }

    stats = LibraryStats(
        total_books=total_books,
        unique_authors_count=len(unique_authors),
        unique_authors=unique_authors,
        books_by_year=books_by_year,
    )

    if total_books > 0:
        oldest = db.query(Book).order_by(Book.published_date.asc(), Book.id.asc()).first()
        newest = db.query(Book).order_by(Book.published_date.desc(), Book.id.asc()).first()
        stats.oldest_book = BookSummary.model_validate(oldest)
        stats.newest_book = BookSummary.model_validate(newest)

    logger.info(
        f"Statistics calculated: {total_books} total books, "
        f"{len(unique_authors)} unique authors"
    )
    return stats
