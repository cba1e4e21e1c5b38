"""
Bulk book import service.

Handles CSV uploads in two modes:
1. Synchronous: every row is processed before the request returns
2. Asynchronous: a job is registered and the rows are processed on the
   import worker pool while the caller polls the job status

Both modes run the same per-row pipeline. Each row produces an
``ImportedRow`` or a ``RowError``; a bad row never aborts the batch.
"""

import re
import time
from collections import Counter
from dataclasses import dataclass
from datetime import date
from functools import partial
from typing import Callable, Iterable, Iterator

from sqlalchemy.orm import Session

from library_api.core.config import get_settings
from library_api.core.database import SessionLocal
from library_api.core.exceptions import ImportQueueFullError
from library_api.core.logging import get_context_logger, get_logger
from library_api.models.book import utcnow
from library_api.schemas.book import check_author, check_isbn, check_title, normalize_isbn
from library_api.schemas.imports import (
    ImportErrorEntry,
    ImportJobStatus,
    ImportResult,
    ImportStatus,
    RowErrorType,
)
from library_api.services import book_service
from library_api.services.csv_parser import EXPECTED_COLUMNS, CSVRow, parse_book_csv
from library_api.services.import_worker import ImportWorkerPool
from library_api.services.job_tracker import ImportJob, ImportJobTracker, RowError

logger = get_logger(__name__)

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@dataclass
class ImportedRow:
    """A row that was stored as a new book."""

    row: int
    book_id: int
    isbn: str


RowOutcome = ImportedRow | RowError


def parse_published_date(value: str) -> date | None:
    """Parse a strict YYYY-MM-DD date, returning None when malformed."""
    if not DATE_PATTERN.match(value):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def _row_error(
    csv_row: CSVRow,
    error_type: RowErrorType,
    message: str,
    title: str | None = None,
    isbn: str | None = None,
) -> RowError:
    return RowError(
        row=csv_row.row,
        error=message,
        raw_data=csv_row.raw_data,
        error_type=error_type,
        title=title,
        isbn=isbn,
    )


def process_row(db: Session, csv_row: CSVRow) -> RowOutcome:
    """Validate a single row and store it as a new book."""
    try:
        if len(csv_row.cells) < len(EXPECTED_COLUMNS):
            return _row_error(
                csv_row,
                RowErrorType.INVALID_FORMAT,
                f"Invalid row format. Expected {len(EXPECTED_COLUMNS)} columns: "
                f"{','.join(EXPECTED_COLUMNS)}",
            )

        title, author, isbn, date_str = (cell.strip() for cell in csv_row.cells[:4])
        isbn = normalize_isbn(isbn)

        if not (title and author and isbn and date_str):
            return _row_error(
                csv_row,
                RowErrorType.MISSING_FIELDS,
                "All fields are required (title, author, isbn, publishedDate)",
                title=title or None,
                isbn=isbn or None,
            )

        problems = [m for m in (check_title(title), check_author(author), check_isbn(isbn)) if m]
        if problems:
            return _row_error(
                csv_row, RowErrorType.VALIDATION_ERROR, "; ".join(problems), title=title, isbn=isbn
            )

        published_date = parse_published_date(date_str)
        if published_date is None:
            return _row_error(
                csv_row,
                RowErrorType.INVALID_DATE,
                "Invalid date format. Use YYYY-MM-DD (e.g., 2024-01-15)",
                title=title,
                isbn=isbn,
            )

        if book_service.is_future_date(published_date):
            return _row_error(
                csv_row,
                RowErrorType.BUSINESS_LOGIC_ERROR,
                book_service.FUTURE_DATE_MESSAGE,
                title=title,
                isbn=isbn,
            )

        if book_service.isbn_exists(db, isbn):
            return _row_error(
                csv_row,
                RowErrorType.DUPLICATE_ISBN,
                "Book with this ISBN already exists",
                title=title,
                isbn=isbn,
            )

        book = book_service.new_book(title, author, isbn, published_date)
        db.add(book)
        db.commit()

        logger.debug(f"Imported book: {title} (row {csv_row.row})")
        return ImportedRow(row=csv_row.row, book_id=book.id, isbn=book.isbn)

    except Exception as e:
        db.rollback()
        logger.error(f"Unexpected error processing row {csv_row.row}: {e}")
        return _row_error(csv_row, RowErrorType.UNEXPECTED_ERROR, f"Unexpected error: {e}")


def process_rows(db: Session, rows: Iterable[CSVRow]) -> Iterator[RowOutcome]:
    """Process rows in file order, yielding one outcome per row."""
    for csv_row in rows:
        yield process_row(db, csv_row)


def build_import_result(success_count: int, errors: list[RowError]) -> ImportResult:
    """Summarize an import: counts, a human-readable message and errors by type."""
    failure_count = len(errors)

    if failure_count == 0:
        message = f"Successfully imported all {success_count} books"
    elif success_count == 0:
        message = f"Import failed: All {failure_count} books had errors"
    else:
        message = (
            f"Partially successful: {success_count} books imported, {failure_count} failed"
        )

    error_summary = None
    if errors:
        error_summary = dict(Counter(error.error_type.value for error in errors))

    return ImportResult(
        success_count=success_count,
        failure_count=failure_count,
        total_processed=success_count + failure_count,
        message=message,
        errors=[ImportErrorEntry.model_validate(error) for error in errors],
        error_summary=error_summary,
    )


def import_books(db: Session, content: bytes, filename: str | None = None) -> ImportResult:
    """Import every row of a CSV upload before returning."""
    logger.info(f"Starting bulk import from file: {filename}")

    rows = parse_book_csv(content, filename)

    success_count = 0
    errors: list[RowError] = []
    for outcome in process_rows(db, rows):
        if isinstance(outcome, RowError):
            errors.append(outcome)
        else:
            success_count += 1

    logger.info(
        f"Bulk import completed: {success_count} successful, "
        f"{len(errors)} failed out of {len(rows)} total rows"
    )
    return build_import_result(success_count, errors)


def start_async_import(
    content: bytes,
    filename: str | None,
    tracker: ImportJobTracker,
    pool: ImportWorkerPool,
    session_factory: Callable[[], Session] = SessionLocal,
) -> str:
    """
    Register a PENDING job and queue its rows on the worker pool.

    The file is parsed here, so unreadable uploads fail the request itself
    rather than the job.

    Returns the job_id for status polling.
    """
    logger.info(f"Starting async bulk import from file: {filename}")

    rows = parse_book_csv(content, filename)
    job_id = tracker.create_job(len(rows), filename=filename)

    settings = get_settings()
    task = partial(
        run_import_job,
        job_id,
        rows,
        tracker,
        session_factory,
        throttle_every=settings.IMPORT_THROTTLE_EVERY,
        throttle_seconds=settings.IMPORT_THROTTLE_SECONDS,
    )

    try:
        pool.submit(task)
    except ImportQueueFullError as e:
        job = tracker.get_job(job_id)
        if job:
            job.status = ImportStatus.FAILED
            job.message = e.message
            job.end_time = utcnow()
            tracker.update_job(job)
        raise

    return job_id


def run_import_job(
    job_id: str,
    rows: list[CSVRow],
    tracker: ImportJobTracker,
    session_factory: Callable[[], Session] = SessionLocal,
    throttle_every: int = 100,
    throttle_seconds: float = 0.01,
) -> None:
    """
    Process an import job's rows, recording progress after every row.

    Runs on an import worker thread with its own database session.
    """
    log = get_context_logger(__name__, job_id=job_id)

    job = tracker.get_job(job_id)
    if job is None:
        log.warning(f"Import job {job_id} no longer exists, skipping")
        return

    log.info(f"Processing import job {job_id} ({job.total_rows} rows)")
    job.status = ImportStatus.PROCESSING
    job.start_time = utcnow()
    job.message = "Processing rows..."
    tracker.update_job(job)

    db = None
    try:
        db = session_factory()
        for index, outcome in enumerate(process_rows(db, rows), start=1):
            if isinstance(outcome, RowError):
                job.errors.append(outcome)
                job.failure_count += 1
            else:
                job.success_count += 1
            job.processed_rows = index
            tracker.update_job(job)

            # Give the database some room on large files
            if throttle_every and index % throttle_every == 0:
                time.sleep(throttle_seconds)

        job.status = ImportStatus.COMPLETED
        job.message = build_import_result(job.success_count, job.errors).message
        log.info(
            f"Import job {job_id} completed: {job.success_count} successful, "
            f"{job.failure_count} failed"
        )

    except Exception as e:
        log.exception(f"Import job {job_id} failed")
        job.status = ImportStatus.FAILED
        job.message = f"Import failed: {e}"

    finally:
        job.end_time = utcnow()
        tracker.update_job(job)
        if db is not None:
            db.close()


def get_import_status(tracker: ImportJobTracker, job_id: str) -> ImportJobStatus | None:
    """Get the status of an import job."""
    job = tracker.get_job(job_id)
    if job is None:
        return None
    return to_job_status(job)


def to_job_status(job: ImportJob) -> ImportJobStatus:
    return ImportJobStatus.model_validate(job)
