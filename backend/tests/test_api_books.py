"""Tests for books API endpoints."""

from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient

from library_api.core.config import get_settings
from library_api.main import app
from library_api.services import book_service

BOOKS_URL = "/api/v1/books"


def book_payload(**overrides) -> dict:
    payload = {
        "title": "The Fifth Season",
        "author": "N. K. Jemisin",
        "isbn": "978-0-316-22929-6",
        "publishedDate": "2015-08-04",
    }
    payload.update(overrides)
    return payload


class TestCreateBook:
    """Test create book endpoint."""

    def test_create_book(self, client: TestClient):
        """Should create a book and return it in the envelope."""
        response = client.post(BOOKS_URL, json=book_payload())

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Book created successfully"
        assert "timestamp" in body
        assert "error" not in body

        book = body["data"]
        assert book["id"] > 0
        assert book["title"] == "The Fifth Season"
        assert book["publishedDate"] == "2015-08-04"
        assert book["createdAt"] == book["updatedAt"]

    def test_create_trims_and_normalizes(self, client: TestClient):
        """Should trim text fields and uppercase the ISBN."""
        response = client.post(
            BOOKS_URL,
            json=book_payload(title="  Spaced Out  ", isbn=" 0-306-40615-x "),
        )

        assert response.status_code == 201
        book = response.json()["data"]
        assert book["title"] == "Spaced Out"
        assert book["isbn"] == "0-306-40615-X"

    def test_create_missing_field(self, client: TestClient):
        """Should reject a request without a title."""
        payload = book_payload()
        del payload["title"]

        response = client.post(BOOKS_URL, json=payload)

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "VALIDATION_ERROR"
        assert "title" in body["error"]["details"]

    def test_create_blank_author(self, client: TestClient):
        """Whitespace-only author should be reported as required."""
        response = client.post(BOOKS_URL, json=book_payload(author="   "))

        assert response.status_code == 400
        details = response.json()["error"]["details"]
        assert details["author"] == "Author is required"

    def test_create_invalid_isbn(self, client: TestClient):
        """Should reject ISBNs with letters other than X."""
        response = client.post(BOOKS_URL, json=book_payload(isbn="ABC-123"))

        assert response.status_code == 400
        assert "isbn" in response.json()["error"]["details"]

    def test_create_title_too_long(self, client: TestClient):
        response = client.post(BOOKS_URL, json=book_payload(title="x" * 501))

        assert response.status_code == 400
        assert "title" in response.json()["error"]["details"]

    def test_create_future_date(self, client: TestClient):
        """Published date after today is a business rule violation."""
        tomorrow = (date.today() + timedelta(days=1)).isoformat()

        response = client.post(BOOKS_URL, json=book_payload(publishedDate=tomorrow))

        assert response.status_code == 400
        body = response.json()
        assert body["error"]["code"] == "BUSINESS_LOGIC_ERROR"
        assert body["message"] == "Published date cannot be in the future"
        assert body["error"]["details"]["providedDate"] == tomorrow

    def test_create_today_is_allowed(self, client: TestClient):
        response = client.post(BOOKS_URL, json=book_payload(publishedDate=date.today().isoformat()))

        assert response.status_code == 201

    def test_create_duplicate_isbn(self, client: TestClient, test_books):
        """Should return 409 and leave the store unchanged."""
        response = client.post(BOOKS_URL, json=book_payload(isbn=test_books[0].isbn))

        assert response.status_code == 409
        body = response.json()
        assert body["error"]["code"] == "DUPLICATE_RESOURCE"
        assert body["message"] == f"ISBN '{test_books[0].isbn}' already exists"

        listing = client.get(BOOKS_URL).json()["data"]
        assert listing["totalElements"] == len(test_books)


class TestGetBook:
    """Test get book endpoint."""

    def test_get_book_by_id(self, client: TestClient, test_books):
        """Should return book by ID."""
        book = test_books[0]
        response = client.get(f"{BOOKS_URL}/{book.id}")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["id"] == book.id
        assert data["title"] == "The Left Hand of Darkness"
        assert data["author"] == "Ursula K. Le Guin"

    def test_get_book_not_found(self, client: TestClient):
        """Should return 404 for non-existent book."""
        response = client.get(f"{BOOKS_URL}/99999")

        assert response.status_code == 404
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "RESOURCE_NOT_FOUND"
        assert body["message"] == "Book with ID 99999 not found"

    def test_get_book_non_numeric_id(self, client: TestClient):
        response = client.get(f"{BOOKS_URL}/abc")

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


class TestListBooks:
    """Test paginated listing."""

    def test_list_default_page(self, client: TestClient, test_books):
        response = client.get(BOOKS_URL)

        assert response.status_code == 200
        page = response.json()["data"]
        assert page["totalElements"] == 4
        assert page["totalPages"] == 1
        assert page["page"] == 0
        assert page["size"] == 10
        assert page["numberOfElements"] == 4
        assert page["first"] is True
        assert page["last"] is True
        assert [b["id"] for b in page["content"]] == sorted(b.id for b in test_books)

    def test_list_second_page(self, client: TestClient, test_books):
        response = client.get(BOOKS_URL, params={"page": 1, "size": 3})

        page = response.json()["data"]
        assert page["totalPages"] == 2
        assert page["numberOfElements"] == 1
        assert page["first"] is False
        assert page["last"] is True

    def test_list_sorted_by_title_desc(self, client: TestClient, test_books):
        response = client.get(BOOKS_URL, params={"sortBy": "title", "direction": "DESC"})

        titles = [b["title"] for b in response.json()["data"]["content"]]
        assert titles == sorted(titles, reverse=True)

    def test_list_sorted_by_published_date(self, client: TestClient, test_books):
        response = client.get(BOOKS_URL, params={"sortBy": "publishedDate"})

        dates = [b["publishedDate"] for b in response.json()["data"]["content"]]
        assert dates == sorted(dates)

    @pytest.mark.parametrize(
        "params, expected_page, expected_size",
        [
            ({"page": -1}, 0, 10),
            ({"size": 0}, 0, 10),
            ({"size": 1000}, 0, 10),
            ({"size": 100}, 0, 100),
        ],
    )
    def test_list_clamps_paging(self, client: TestClient, params, expected_page, expected_size):
        """Out-of-range paging values fall back to defaults."""
        response = client.get(BOOKS_URL, params=params)

        page = response.json()["data"]
        assert page["page"] == expected_page
        assert page["size"] == expected_size

    def test_list_default_size_follows_settings(
        self, client: TestClient, test_books, monkeypatch
    ):
        monkeypatch.setattr(get_settings(), "DEFAULT_PAGE_SIZE", 3)

        page = client.get(BOOKS_URL).json()["data"]
        assert page["size"] == 3
        assert page["numberOfElements"] == 3

        page = client.get(f"{BOOKS_URL}/search", params={"keyword": "e"}).json()["data"]
        assert page["size"] == 3

    def test_list_unknown_sort_field(self, client: TestClient):
        response = client.get(BOOKS_URL, params={"sortBy": "rating"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_list_empty_library(self, client: TestClient):
        page = client.get(BOOKS_URL).json()["data"]

        assert page["content"] == []
        assert page["totalElements"] == 0
        assert page["totalPages"] == 0


class TestSearchBooks:
    """Test book search endpoint."""

    def test_search_by_author(self, client: TestClient, test_books):
        """Should match author case-insensitively."""
        response = client.get(f"{BOOKS_URL}/search", params={"keyword": "le guin"})

        assert response.status_code == 200
        page = response.json()["data"]
        assert page["totalElements"] == 2
        assert all(b["author"] == "Ursula K. Le Guin" for b in page["content"])

    def test_search_by_title(self, client: TestClient, test_books):
        response = client.get(f"{BOOKS_URL}/search", params={"keyword": "KINDRED"})

        content = response.json()["data"]["content"]
        assert [b["title"] for b in content] == ["Kindred"]

    def test_search_by_isbn_fragment(self, client: TestClient, test_books):
        response = client.get(f"{BOOKS_URL}/search", params={"keyword": "8070-8305"})

        content = response.json()["data"]["content"]
        assert [b["title"] for b in content] == ["Kindred"]

    def test_search_empty_keyword_lists_all(self, client: TestClient, test_books):
        """Blank keyword behaves like the plain listing."""
        searched = client.get(f"{BOOKS_URL}/search", params={"keyword": "  "}).json()["data"]
        listed = client.get(BOOKS_URL).json()["data"]

        assert searched["totalElements"] == 4
        assert [b["id"] for b in searched["content"]] == [b["id"] for b in listed["content"]]

    def test_search_wildcards_are_literal(self, client: TestClient, test_books):
        response = client.get(f"{BOOKS_URL}/search", params={"keyword": "%"})

        assert response.json()["data"]["totalElements"] == 0

    def test_search_no_match(self, client: TestClient, test_books):
        response = client.get(f"{BOOKS_URL}/search", params={"keyword": "tolkien"})

        page = response.json()["data"]
        assert page["content"] == []
        assert page["totalPages"] == 0


class TestUpdateBook:
    """Test update book endpoint."""

    def test_update_merges_fields(self, client: TestClient, test_books):
        """Only the fields sent are changed."""
        book = test_books[2]
        response = client.put(f"{BOOKS_URL}/{book.id}", json={"title": "  Kindred (Reissue)  "})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["title"] == "Kindred (Reissue)"
        assert data["author"] == book.author
        assert data["isbn"] == book.isbn
        assert data["publishedDate"] == "1979-06-01"

    def test_update_same_isbn(self, client: TestClient, test_books):
        book = test_books[0]
        response = client.put(f"{BOOKS_URL}/{book.id}", json={"isbn": book.isbn})

        assert response.status_code == 200

    def test_update_duplicate_isbn(self, client: TestClient, test_books):
        response = client.put(
            f"{BOOKS_URL}/{test_books[0].id}", json={"isbn": test_books[1].isbn}
        )

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "DUPLICATE_RESOURCE"

    def test_update_future_date(self, client: TestClient, test_books):
        tomorrow = (date.today() + timedelta(days=1)).isoformat()

        response = client.put(
            f"{BOOKS_URL}/{test_books[0].id}", json={"publishedDate": tomorrow}
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "BUSINESS_LOGIC_ERROR"

    def test_update_not_found(self, client: TestClient):
        response = client.put(f"{BOOKS_URL}/99999", json={"title": "Nothing"})

        assert response.status_code == 404


class TestDeleteBook:
    """Test delete book endpoint."""

    def test_delete_book(self, client: TestClient, test_books):
        book = test_books[0]

        response = client.delete(f"{BOOKS_URL}/{book.id}")

        assert response.status_code == 204
        assert response.content == b""
        assert client.get(f"{BOOKS_URL}/{book.id}").status_code == 404

    def test_delete_not_found(self, client: TestClient):
        response = client.delete(f"{BOOKS_URL}/99999")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "RESOURCE_NOT_FOUND"


class TestStats:
    """Test library statistics endpoint."""

    def test_stats(self, client: TestClient, test_books):
        response = client.get(f"{BOOKS_URL}/stats")

        assert response.status_code == 200
        stats = response.json()["data"]
        assert stats["totalBooks"] == 4
        assert stats["uniqueAuthorsCount"] == 3
        assert stats["uniqueAuthors"] == ["Octavia E. Butler", "Terry Pratchett", "Ursula K. Le Guin"]
        assert stats["booksByYear"] == {"1992": 1, "1979": 1, "1969": 1, "1968": 1}
        assert stats["oldestBook"]["title"] == "A Wizard of Earthsea"
        assert stats["newestBook"]["title"] == "Small Gods"

    def test_stats_empty_library(self, client: TestClient):
        """Oldest and newest are omitted when there are no books."""
        stats = client.get(f"{BOOKS_URL}/stats").json()["data"]

        assert stats["totalBooks"] == 0
        assert stats["uniqueAuthors"] == []
        assert stats["booksByYear"] == {}
        assert "oldestBook" not in stats
        assert "newestBook" not in stats


class TestErrorHandling:
    """Test the error envelope and response headers."""

    def test_unknown_route(self, client: TestClient):
        response = client.get("/api/v1/nothing-here")

        assert response.status_code == 404
        assert response.json()["success"] is False

    def test_unexpected_error_is_wrapped(self, client: TestClient, monkeypatch):
        """Unhandled exceptions become a 500 with a generic message."""

        def explode(db):
            raise RuntimeError("database on fire")

        monkeypatch.setattr(book_service, "get_library_stats", explode)

        failing_client = TestClient(app, raise_server_exceptions=False)
        response = failing_client.get(f"{BOOKS_URL}/stats")

        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "INTERNAL_SERVER_ERROR"
        assert "database on fire" not in body["message"]

    def test_request_id_is_echoed(self, client: TestClient):
        response = client.get(BOOKS_URL, headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"
        assert response.headers["X-Content-Type-Options"] == "nosniff"


class TestHealth:
    def test_health(self, client: TestClient):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_readiness(self, client: TestClient):
        response = client.get("/health/ready")

        assert response.status_code == 200
        data = response.json()
        assert data["checks"]["import_workers"] == "running"
