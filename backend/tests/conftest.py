"""
Pytest configuration and fixtures for backend tests.
"""

import os

# Must be set before the application modules read their settings
os.environ["DATABASE_URL"] = "sqlite://"

from datetime import date
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from library_api.api.deps import get_import_pool, get_job_tracker, get_session_factory
from library_api.core.database import Base, get_db
from library_api.main import app
from library_api.models.book import Book
from library_api.services import book_service
from library_api.services.import_worker import ImportWorkerPool
from library_api.services.job_tracker import ImportJobTracker, InMemoryJobStore

# Create in-memory SQLite database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a fresh database session for each test."""
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_factory():
    """Session factory for code that opens its own sessions, like import jobs."""
    return TestingSessionLocal


@pytest.fixture
def job_tracker() -> ImportJobTracker:
    return ImportJobTracker(InMemoryJobStore(ttl_seconds=3600, max_entries=100))


@pytest.fixture
def import_pool() -> Generator[ImportWorkerPool, None, None]:
    """A single-worker pool, so background jobs run one at a time."""
    pool = ImportWorkerPool(worker_count=1, queue_capacity=10, name_prefix="test-import")
    pool.start()
    yield pool
    pool.shutdown(wait=True)


@pytest.fixture(scope="function")
def client(
    db: Session,
    job_tracker: ImportJobTracker,
    import_pool: ImportWorkerPool,
    session_factory,
) -> Generator[TestClient, None, None]:
    """Create a test client with database and import overrides."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_job_tracker] = lambda: job_tracker
    app.dependency_overrides[get_import_pool] = lambda: import_pool
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def test_books(db: Session) -> list[Book]:
    """Create test books."""
    books = [
        book_service.new_book(
            "The Left Hand of Darkness", "Ursula K. Le Guin", "978-0-441-47812-5", date(1969, 3, 1)
        ),
        book_service.new_book(
            "A Wizard of Earthsea", "Ursula K. Le Guin", "978-0-547-77374-2", date(1968, 11, 1)
        ),
        book_service.new_book(
            "Kindred", "Octavia E. Butler", "978-0-8070-8305-5", date(1979, 6, 1)
        ),
        book_service.new_book(
            "Small Gods", "Terry Pratchett", "978-0-06-223737-0", date(1992, 5, 1)
        ),
    ]

    for book in books:
        db.add(book)

    db.commit()

    for book in books:
        db.refresh(book)

    return books


# Sample CSV data for import tests
SAMPLE_IMPORT_CSV = b"""title,author,isbn,publishedDate
Parable of the Sower,Octavia E. Butler,978-1-53-874473-2,1993-10-01
The Dispossessed,Ursula K. Le Guin,978-0-06-051275-2,1974-05-01
Guards! Guards!,Terry Pratchett,978-0-06-230046-3,1989-11-01
"""


@pytest.fixture
def sample_csv() -> bytes:
    """Return a valid three-row import CSV."""
    return SAMPLE_IMPORT_CSV
