"""
Import job tracking.

Background imports write their progress into an ``ImportJob`` record and the
status endpoint reads it back. Records live in a ``JobStore``; the default
in-memory store keeps snapshots, so a reader never observes a record while
a worker is halfway through changing it.
"""

import threading
import time
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Callable, Protocol

from library_api.core.logging import get_logger
from library_api.models.book import utcnow
from library_api.schemas.imports import FINISHED_STATUSES, ImportStatus, RowErrorType

logger = get_logger(__name__)


@dataclass(frozen=True)
class RowError:
    """A row that could not be imported. Immutable, so snapshots can share it."""

    row: int
    error: str
    raw_data: str
    error_type: RowErrorType
    isbn: str | None = None
    title: str | None = None


@dataclass
class ImportJob:
    """Status of an asynchronous bulk import."""

    job_id: str
    total_rows: int
    status: ImportStatus = ImportStatus.PENDING
    filename: str | None = None
    message: str | None = None
    processed_rows: int = 0
    success_count: int = 0
    failure_count: int = 0
    errors: list[RowError] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    start_time: datetime | None = None
    end_time: datetime | None = None

    @property
    def progress(self) -> float:
        if self.total_rows == 0:
            return 0.0
        return self.processed_rows * 100.0 / self.total_rows

    @property
    def is_finished(self) -> bool:
        return self.status in FINISHED_STATUSES


class JobStore(Protocol):
    """Storage for import jobs, keyed by job id."""

    def get(self, job_id: str) -> ImportJob | None: ...

    def put(self, job: ImportJob) -> None: ...


class _StoredJob:
    """A stored record: a copy of the job's fields plus its errors, owned by the store."""

    __slots__ = ("written_at", "job", "errors")

    def __init__(self, written_at: float, job: ImportJob, errors: list[RowError]):
        self.written_at = written_at
        self.job = job
        self.errors = errors


class InMemoryJobStore:
    """
    Process-local job store with expiry and a size cap.

    Entries expire ``ttl_seconds`` after their last write. When more than
    ``max_entries`` jobs are stored, the least recently written finished job
    is evicted; jobs still pending or processing are never dropped.

    A job's ``errors`` only ever grow, so a write copies the scalar fields and
    appends just the errors added since the previous write. Reads get their
    own list, so a write costs the same however many errors the job holds.
    """

    def __init__(
        self,
        ttl_seconds: float = 24 * 60 * 60,
        max_entries: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._lock = threading.Lock()
        self._jobs: OrderedDict[str, _StoredJob] = OrderedDict()

    def get(self, job_id: str) -> ImportJob | None:
        with self._lock:
            self._expire()
            entry = self._jobs.get(job_id)
            if entry is None:
                return None
            return replace(entry.job, errors=list(entry.errors))

    def put(self, job: ImportJob) -> None:
        fields = replace(job, errors=[])
        with self._lock:
            entry = self._jobs.get(job.job_id)
            if entry is not None and len(job.errors) >= len(entry.errors):
                entry.errors.extend(job.errors[len(entry.errors):])
                errors = entry.errors
            else:
                errors = list(job.errors)
            self._jobs[job.job_id] = _StoredJob(self._clock(), fields, errors)
            self._jobs.move_to_end(job.job_id)
            self._expire()
            self._evict()

    def __len__(self) -> int:
        with self._lock:
            self._expire()
            return len(self._jobs)

    def _expire(self) -> None:
        # Entries are ordered by write time, so stop at the first live one
        cutoff = self._clock() - self.ttl_seconds
        expired = []
        for job_id, entry in self._jobs.items():
            if entry.written_at > cutoff:
                break
            if entry.job.is_finished:
                expired.append(job_id)
        for job_id in expired:
            del self._jobs[job_id]
            logger.debug(f"Expired import job {job_id}")

    def _evict(self) -> None:
        overflow = len(self._jobs) - self.max_entries
        if overflow <= 0:
            return
        finished = [job_id for job_id, entry in self._jobs.items() if entry.job.is_finished]
        for job_id in finished[:overflow]:
            del self._jobs[job_id]
            logger.info(f"Evicted import job {job_id} (store full)")
        if overflow > len(finished):
            logger.warning(
                f"Import job store over capacity: {len(self._jobs)} jobs, "
                f"{self.max_entries} allowed, none of the rest finished"
            )


class ImportJobTracker:
    """Creates, reads and updates import jobs in a JobStore."""

    def __init__(self, store: JobStore):
        self.store = store

    def create_job(self, total_rows: int, filename: str | None = None) -> str:
        """Register a new PENDING job and return its id."""
        job_id = str(uuid.uuid4())
        self.store.put(ImportJob(job_id=job_id, total_rows=total_rows, filename=filename))
        logger.info(f"Created import job {job_id} for {total_rows} rows")
        return job_id

    def get_job(self, job_id: str) -> ImportJob | None:
        return self.store.get(job_id)

    def update_job(self, job: ImportJob) -> None:
        """Replace the stored record for ``job.job_id``; last writer wins."""
        self.store.put(job)
