from library_api.schemas.book import (
    BookCreate,
    BookResponse,
    BookSummary,
    BookUpdate,
    LibraryStats,
)
from library_api.schemas.common import ApiResponse, ErrorDetails, PageResponse
from library_api.schemas.imports import (
    AsyncImportAccepted,
    ImportErrorEntry,
    ImportJobStatus,
    ImportResult,
    ImportStatus,
    RowErrorType,
)

__all__ = [
    "ApiResponse",
    "ErrorDetails",
    "PageResponse",
    "BookCreate",
    "BookUpdate",
    "BookResponse",
    "BookSummary",
    "LibraryStats",
    "ImportStatus",
    "RowErrorType",
    "ImportErrorEntry",
    "ImportResult",
    "AsyncImportAccepted",
    "ImportJobStatus",
]
