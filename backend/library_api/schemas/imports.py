from datetime import datetime
from enum import Enum

from library_api.schemas.common import CamelModel


class ImportStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


FINISHED_STATUSES = (ImportStatus.COMPLETED, ImportStatus.FAILED)


class RowErrorType(str, Enum):
    INVALID_FORMAT = "INVALID_FORMAT"
    MISSING_FIELDS = "MISSING_FIELDS"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_DATE = "INVALID_DATE"
    BUSINESS_LOGIC_ERROR = "BUSINESS_LOGIC_ERROR"
    DUPLICATE_ISBN = "DUPLICATE_ISBN"
    UNEXPECTED_ERROR = "UNEXPECTED_ERROR"


class ImportErrorEntry(CamelModel):
    row: int
    isbn: str | None = None
    title: str | None = None
    error: str
    raw_data: str
    error_type: RowErrorType


class ImportResult(CamelModel):
    success_count: int
    failure_count: int
    total_processed: int
    message: str
    errors: list[ImportErrorEntry]
    error_summary: dict[str, int] | None = None


class AsyncImportAccepted(CamelModel):
    job_id: str
    status: ImportStatus


class ImportJobStatus(CamelModel):
    job_id: str
    status: ImportStatus
    filename: str | None = None
    message: str | None = None
    total_rows: int
    processed_rows: int
    success_count: int
    failure_count: int
    progress: float
    errors: list[ImportErrorEntry]
    created_at: datetime
    start_time: datetime | None = None
    end_time: datetime | None = None
