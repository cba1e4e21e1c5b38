"""
HTTP client for the library REST API.

Used by the desktop client and scripts. Every call unwraps the
``ApiResponse`` envelope and raises ``LibraryClientError`` on failure.
"""

import asyncio
import time
from pathlib import Path
from typing import Any

import httpx

from library_api.schemas.book import BookCreate, BookResponse, BookUpdate, LibraryStats
from library_api.schemas.common import PageResponse
from library_api.schemas.imports import FINISHED_STATUSES, ImportJobStatus, ImportResult

DEFAULT_BASE_URL = "http://localhost:8000/api/v1"


class LibraryClientError(Exception):
    """An error response (or unreadable response) from the API."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        code: str | None = None,
        details: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.details = details


class LibraryClient:
    """Async client for the books API."""

    # Uploads larger than this go through the background import endpoint
    ASYNC_THRESHOLD_KB = 50

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        async_threshold_kb: int = ASYNC_THRESHOLD_KB,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.async_threshold_kb = async_threshold_kb
        self.client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            headers={"User-Agent": "LibraryClient/1.0"},
            transport=transport,
        )

    async def close(self):
        await self.client.aclose()

    async def __aenter__(self) -> "LibraryClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def list_books(
        self,
        page: int = 0,
        size: int = 10,
        sort_by: str = "id",
        direction: str = "ASC",
    ) -> PageResponse[BookResponse]:
        data = await self._request(
            "GET",
            "/books",
            params={"page": page, "size": size, "sortBy": sort_by, "direction": direction},
        )
        return PageResponse[BookResponse].model_validate(data)

    async def search_books(
        self, keyword: str, page: int = 0, size: int = 10
    ) -> PageResponse[BookResponse]:
        data = await self._request(
            "GET", "/books/search", params={"keyword": keyword, "page": page, "size": size}
        )
        return PageResponse[BookResponse].model_validate(data)

    async def get_book(self, book_id: int) -> BookResponse:
        return BookResponse.model_validate(await self._request("GET", f"/books/{book_id}"))

    async def create_book(self, book: BookCreate) -> BookResponse:
        data = await self._request(
            "POST", "/books", json=book.model_dump(mode="json", by_alias=True)
        )
        return BookResponse.model_validate(data)

    async def update_book(self, book_id: int, book: BookUpdate) -> BookResponse:
        data = await self._request(
            "PUT",
            f"/books/{book_id}",
            json=book.model_dump(mode="json", by_alias=True, exclude_none=True),
        )
        return BookResponse.model_validate(data)

    async def delete_book(self, book_id: int) -> None:
        await self._request("DELETE", f"/books/{book_id}")

    async def get_stats(self) -> LibraryStats:
        return LibraryStats.model_validate(await self._request("GET", "/books/stats"))

    async def import_csv(self, path: str | Path) -> ImportResult | str:
        """
        Upload a CSV file.

        Small files are imported synchronously and the ImportResult is
        returned. Files above ``async_threshold_kb`` start a background
        import and the job ID is returned instead.
        """
        path = Path(path)
        content = await asyncio.to_thread(path.read_bytes)
        files = {"file": (path.name, content, "text/csv")}

        if len(content) / 1024 > self.async_threshold_kb:
            data = await self._request("POST", "/books/bulk-async", files=files, timeout=300.0)
            return data["jobId"]

        data = await self._request("POST", "/books/bulk", files=files, timeout=300.0)
        return ImportResult.model_validate(data)

    async def get_import_status(self, job_id: str) -> ImportJobStatus:
        data = await self._request("GET", f"/books/bulk/status/{job_id}")
        return ImportJobStatus.model_validate(data)

    async def wait_for_import(
        self,
        job_id: str,
        poll_interval: float = 1.0,
        timeout: float = 600.0,
    ) -> ImportJobStatus:
        """Poll a background import until it completes or fails."""
        deadline = time.monotonic() + timeout
        while True:
            status = await self.get_import_status(job_id)
            if status.status in FINISHED_STATUSES:
                return status
            if time.monotonic() >= deadline:
                raise LibraryClientError(
                    f"Import {job_id} still {status.status} after {timeout:.0f}s"
                )
            await asyncio.sleep(poll_interval)

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        response = await self.client.request(method, url, **kwargs)

        if response.status_code == 204:
            return None

        try:
            body = response.json()
        except ValueError:
            raise LibraryClientError(
                f"Unexpected response ({response.status_code})",
                status_code=response.status_code,
            ) from None

        if response.is_error or not body.get("success", False):
            error = body.get("error") or {}
            message = body.get("message") or f"Request failed ({response.status_code})"
            if error.get("code") == "VALIDATION_ERROR":
                message = _format_validation_error(message, error.get("details"))
            raise LibraryClientError(
                message,
                status_code=response.status_code,
                code=error.get("code"),
                details=error.get("details"),
            )

        return body.get("data")


def _format_validation_error(message: str, details: Any) -> str:
    """Append field-level validation messages, one per line."""
    if not isinstance(details, dict) or not details:
        return message
    lines = [f"{field}: {reason}" for field, reason in details.items()]
    return message + "\n\n" + "\n".join(lines)
