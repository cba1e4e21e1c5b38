from library_api.services import book_service, import_service
from library_api.services.csv_parser import BookCSVParser, CSVRow, parse_book_csv
from library_api.services.import_worker import ImportWorkerPool
from library_api.services.job_tracker import (
    ImportJob,
    ImportJobTracker,
    InMemoryJobStore,
    JobStore,
    RowError,
)

__all__ = [
    "book_service",
    "import_service",
    # CSV parsing
    "BookCSVParser",
    "CSVRow",
    "parse_book_csv",
    # Job tracking
    "ImportJob",
    "ImportJobTracker",
    "InMemoryJobStore",
    "JobStore",
    "RowError",
    # Background imports
    "ImportWorkerPool",
]
