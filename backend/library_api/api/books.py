from typing import Callable

from fastapi import APIRouter, Depends, File, Query, Response, UploadFile
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from library_api.api.deps import get_import_pool, get_job_tracker, get_session_factory
from library_api.core.config import get_settings
from library_api.core.database import get_db
from library_api.core.exceptions import InvalidUploadError, ResourceNotFoundError
from library_api.core.logging import get_logger
from library_api.schemas.book import BookCreate, BookResponse, BookUpdate, LibraryStats
from library_api.schemas.common import ApiResponse, PageResponse
from library_api.schemas.imports import (
    AsyncImportAccepted,
    ImportJobStatus,
    ImportResult,
    ImportStatus,
)
from library_api.services import book_service, import_service
from library_api.services.import_worker import ImportWorkerPool
from library_api.services.job_tracker import ImportJobTracker

router = APIRouter()
logger = get_logger(__name__)


async def _read_csv_upload(file: UploadFile) -> bytes:
    """Read an uploaded CSV, rejecting empty, non-CSV and oversized files."""
    settings = get_settings()

    content = await file.read()
    if not content:
        raise InvalidUploadError("File is empty", "EMPTY_FILE")

    if not file.filename or not file.filename.lower().endswith(".csv"):
        raise InvalidUploadError("Only CSV files are supported", "INVALID_FILE_TYPE")

    if len(content) > settings.max_upload_size_bytes:
        raise InvalidUploadError(
            f"File size exceeds maximum allowed limit ({settings.MAX_UPLOAD_SIZE_MB}MB)",
            "FILE_TOO_LARGE",
            status_code=413,
        )

    return content


@router.post(
    "",
    status_code=201,
    response_model=ApiResponse[BookResponse],
    response_model_exclude_none=True,
)
def create_book(book: BookCreate, db: Session = Depends(get_db)):
    """Add a new book to the library."""
    created = book_service.create_book(db, book)
    return ApiResponse.ok(created, "Book created successfully")


@router.get(
    "",
    response_model=ApiResponse[PageResponse[BookResponse]],
    response_model_exclude_none=True,
)
def list_books(
    page: int = Query(0, description="Page number (0-indexed)"),
    size: int | None = Query(None, description="Items per page"),
    sort_by: str = Query("id", alias="sortBy", description="Field to sort by"),
    direction: str = Query("ASC", description="Sort direction (ASC or DESC)"),
    db: Session = Depends(get_db),
):
    """List books with pagination and sorting."""
    books = book_service.list_books(db, page, size, sort_by, direction)
    return ApiResponse.ok(books, f"Retrieved {books.number_of_elements} books")


@router.get(
    "/search",
    response_model=ApiResponse[PageResponse[BookResponse]],
    response_model_exclude_none=True,
)
def search_books(
    keyword: str = Query("", description="Matches title, author or ISBN"),
    page: int = Query(0, description="Page number (0-indexed)"),
    size: int | None = Query(None, description="Items per page"),
    db: Session = Depends(get_db),
):
    """Search books by title, author or ISBN (case-insensitive partial match)."""
    books = book_service.search_books(db, keyword, page, size)
    return ApiResponse.ok(books, f"Found {books.total_elements} matching books")


@router.get(
    "/stats",
    response_model=ApiResponse[LibraryStats],
    response_model_exclude_none=True,
)
def get_stats(db: Session = Depends(get_db)):
    """Library statistics: totals, authors, books per year, oldest and newest."""
    stats = book_service.get_library_stats(db)
    return ApiResponse.ok(stats, "Statistics retrieved successfully")


@router.post(
    "/bulk",
    status_code=201,
    response_model=ApiResponse[ImportResult],
    response_model_exclude_none=True,
)
async def bulk_import_books(
    file: UploadFile = File(..., description="CSV file: title,author,isbn,publishedDate"),
    db: Session = Depends(get_db),
):
    """
    Import books from a CSV file and wait for the result.

    Rows are processed independently; the response lists every row that
    failed along with the reason.
    """
    logger.info(f"Request to bulk import books from file: {file.filename}")
    content = await _read_csv_upload(file)

    result = await run_in_threadpool(import_service.import_books, db, content, file.filename)
    return ApiResponse.ok(result, "Bulk import completed")


@router.post(
    "/bulk-async",
    status_code=202,
    response_model=ApiResponse[AsyncImportAccepted],
    response_model_exclude_none=True,
)
async def bulk_import_books_async(
    file: UploadFile = File(..., description="CSV file: title,author,isbn,publishedDate"),
    tracker: ImportJobTracker = Depends(get_job_tracker),
    pool: ImportWorkerPool = Depends(get_import_pool),
    session_factory: Callable[[], Session] = Depends(get_session_factory),
):
    """
    Start a background import and return its job ID.

    Poll `/bulk/status/{job_id}` for progress.
    """
    logger.info(f"Request to async bulk import: {file.filename}")
    content = await _read_csv_upload(file)

    job_id = import_service.start_async_import(
        content, file.filename, tracker, pool, session_factory
    )
    job = tracker.get_job(job_id)
    status = job.status if job else ImportStatus.PENDING

    return ApiResponse.ok(
        AsyncImportAccepted(job_id=job_id, status=status),
        "Import started. Use job ID to check progress.",
    )


@router.get(
    "/bulk/status/{job_id}",
    response_model=ApiResponse[ImportJobStatus],
    response_model_exclude_none=True,
)
def get_import_status(
    job_id: str,
    tracker: ImportJobTracker = Depends(get_job_tracker),
):
    """Check the progress of an async bulk import."""
    status = import_service.get_import_status(tracker, job_id)
    if status is None:
        raise ResourceNotFoundError("Import job", job_id)
    return ApiResponse.ok(status, "Job status retrieved")


@router.get(
    "/{book_id}",
    response_model=ApiResponse[BookResponse],
    response_model_exclude_none=True,
)
def get_book(book_id: int, db: Session = Depends(get_db)):
    """Get book details by ID."""
    return ApiResponse.ok(book_service.get_book(db, book_id), "Book retrieved successfully")


@router.put(
    "/{book_id}",
    response_model=ApiResponse[BookResponse],
    response_model_exclude_none=True,
)
def update_book(book_id: int, book: BookUpdate, db: Session = Depends(get_db)):
    """Update an existing book's details."""
    updated = book_service.update_book(db, book_id, book)
    return ApiResponse.ok(updated, "Book updated successfully")


@router.delete("/{book_id}", status_code=204)
def delete_book(book_id: int, db: Session = Depends(get_db)):
    """Delete a book from the library."""
    book_service.delete_book(db, book_id)
    return Response(status_code=204)
