from typing import Callable

from fastapi import Request
from sqlalchemy.orm import Session

from library_api.core.database import SessionLocal
from library_api.services.import_worker import ImportWorkerPool
from library_api.services.job_tracker import ImportJobTracker


def get_job_tracker(request: Request) -> ImportJobTracker:
    """Dependency returning the job tracker created at startup."""
    return request.app.state.job_tracker


def get_import_pool(request: Request) -> ImportWorkerPool:
    """Dependency returning the import worker pool created at startup."""
    return request.app.state.import_pool


def get_session_factory() -> Callable[[], Session]:
    """Session factory used by background imports, which outlive the request."""
    return SessionLocal
