"""
Domain exceptions.

Each exception carries the error code and details rendered into the
response envelope by the handlers in ``library_api.api.errors``.
"""

from typing import Any


class LibraryError(Exception):
    """Base class for all errors surfaced to API callers."""

    status_code = 500
    error_code = "INTERNAL_SERVER_ERROR"

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ResourceNotFoundError(LibraryError):
    status_code = 404
    error_code = "RESOURCE_NOT_FOUND"

    def __init__(self, resource_type: str, resource_id: Any):
        super().__init__(
            f"{resource_type} with ID {resource_id} not found",
            details={"resourceType": resource_type, "resourceId": resource_id},
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class DuplicateResourceError(LibraryError):
    status_code = 409
    error_code = "DUPLICATE_RESOURCE"

    def __init__(self, field_name: str, field_value: Any):
        super().__init__(
            f"{field_name} '{field_value}' already exists",
            details={"field": field_name, "value": field_value},
        )
        self.field_name = field_name
        self.field_value = field_value


class BusinessRuleError(LibraryError):
    status_code = 400
    error_code = "BUSINESS_LOGIC_ERROR"


class FieldValidationError(LibraryError):
    status_code = 400
    error_code = "VALIDATION_ERROR"


class FileProcessingError(LibraryError):
    status_code = 400
    error_code = "FILE_PROCESSING_ERROR"

    def __init__(self, message: str, filename: str | None = None):
        super().__init__(message, details={"fileName": filename or "unknown"})
        self.filename = filename


class ImportQueueFullError(LibraryError):
    status_code = 503
    error_code = "IMPORT_QUEUE_FULL"

    def __init__(self, capacity: int):
        super().__init__(
            "Too many imports are queued. Please try again later.",
            details={"queueCapacity": capacity},
        )


class InvalidUploadError(LibraryError):
    """An upload rejected before any of its rows are read."""

    def __init__(self, message: str, error_code: str, status_code: int = 400):
        super().__init__(message)
        self.error_code = error_code
        self.status_code = status_code
