"""
Service-layer exceptions.

Raised by the query engine, the booking lifecycle and the storage
collections; the API layer turns them into HTTP responses through a
single exception handler registered in ``main.py``.
"""
from enum import Enum
from typing import Any, Optional, Sequence


class ErrorKind(str, Enum):
    INVALID_REQUEST = "InvalidRequest"
    INVALID_PAGINATION = "InvalidPagination"
    PAGE_OUT_OF_RANGE = "PageOutOfRange"
    INVALID_SORT = "InvalidSort"
    INVALID_FILTER = "InvalidFilter"
    MISSING_SERVICE = "MissingService"
    INVALID_DATE_RANGE = "InvalidDateRange"
    VEHICLE_UNAVAILABLE = "VehicleUnavailable"
    CANCELLATION_WINDOW_EXPIRED = "CancellationWindowExpired"
    ALREADY_CANCELLED = "AlreadyCancelled"
    INVALID_STATUS_TRANSITION = "InvalidStatusTransition"
    NOT_FOUND = "NotFound"
    NOT_OWNER = "NotOwner"
    STORAGE_FAILURE = "StorageFailure"
    TIMEOUT = "Timeout"


class ServiceError(Exception):
    """Base exception for all service-layer errors."""

    status_code = 500

    def __init__(self, message: str, kind: ErrorKind, path: Optional[Sequence[str]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.path = list(path or [])

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind.value, "path": self.path, "message": self.message}


class ValidationError(ServiceError):
    """Caller-fixable input problem."""

    status_code = 400


class NotFoundError(ServiceError):
    """A referenced entity does not exist."""

    status_code = 404

    def __init__(self, resource: str, identifier: Any, path: Optional[Sequence[str]] = None) -> None:
        super().__init__(f"{resource} {identifier} not found", ErrorKind.NOT_FOUND, path)
        self.resource = resource
        self.identifier = identifier


class AuthorizationError(ServiceError):
    status_code = 403

    def __init__(self, message: str = "You are not authorized to access this booking") -> None:
        super().__init__(message, ErrorKind.NOT_OWNER, ["user"])


class StorageError(ServiceError):
    """The underlying collection failed. Never retried here."""

    status_code = 500

    def __init__(self, message: str, kind: ErrorKind = ErrorKind.STORAGE_FAILURE) -> None:
        super().__init__(message, kind, ["storage"])
