from datetime import datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from library_api.models.book import utcnow

T = TypeVar("T")


class CamelModel(BaseModel):
    """Base schema serialized with camelCase keys, as the desktop client expects."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class ErrorDetails(CamelModel):
    code: str
    details: Any = None


class ApiResponse(CamelModel, Generic[T]):
    """Envelope wrapping every API response."""

    success: bool
    message: str | None = None
    data: T | None = None
    error: ErrorDetails | None = None
    timestamp: datetime = Field(default_factory=utcnow)

    @classmethod
    def ok(cls, data: Any = None, message: str | None = None) -> "ApiResponse":
        return cls(success=True, message=message, data=data)

    @classmethod
    def fail(cls, message: str, code: str, details: Any = None) -> "ApiResponse":
        return cls(success=False, message=message, error=ErrorDetails(code=code, details=details))


class PageResponse(CamelModel, Generic[T]):
    """A slice of results plus pagination metadata."""

    content: list[T]
    total_elements: int
    total_pages: int
    page: int
    size: int
    number_of_elements: int
    first: bool
    last: bool
