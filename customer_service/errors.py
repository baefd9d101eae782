# customer_service/errors.py

"""
Typed outcomes of the record operations.

Operations never let these escape to the router as exceptions. They come back
inside an Outcome, and the router maps ``kind``/``status_code`` to a response
without looking at message text.
"""

from dataclasses import dataclass
from typing import Any, Generic, List, Optional, TypeVar

from fastapi import status

T = TypeVar("T")


class RecordError(Exception):
    kind = "storage_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def details(self) -> dict:
        return {}

    def to_response(self) -> dict:
        return {"kind": self.kind, "message": self.message, **self.details()}


class ValidationError(RecordError):
    kind = "validation_error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, missing_fields: List[str], message: Optional[str] = None):
        super().__init__(
            message or f"Missing required fields: {', '.join(missing_fields)}"
        )
        self.missing_fields = list(missing_fields)

    def details(self) -> dict:
        return {"missing_fields": self.missing_fields}


class ConflictError(RecordError):
    kind = "conflict"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, field: str, message: Optional[str] = None):
        super().__init__(
            message or f"{field.replace('_', ' ').capitalize()} already exists."
        )
        self.field = field

    def details(self) -> dict:
        return {"field": self.field}


class NotFoundError(RecordError):
    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, entity: str, id: int):
        super().__init__(f"{entity.capitalize()} not found")
        self.entity = entity
        self.id = id

    def details(self) -> dict:
        return {"entity": self.entity, "id": self.id}


class UnresolvedReferenceError(RecordError):
    """A foreign reference (e.g. an address's customer_id) points at no row."""

    kind = "reference_error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, field: str, message: Optional[str] = None):
        super().__init__(message or f"{field} does not reference an existing record.")
        self.field = field

    def details(self) -> dict:
        return {"field": self.field}


class StorageError(RecordError):
    kind = "storage_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: str):
        super().__init__("A storage error occurred.")
        # Kept for logs only; the response body never carries driver messages
        self.detail = detail


@dataclass
class Mutation(Generic[T]):
    changes: int
    record: Optional[T] = None


@dataclass
class Outcome(Generic[T]):
    value: Optional[T] = None
    error: Optional[RecordError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Any) -> "Outcome":
        return cls(value=value)

    @classmethod
    def failure(cls, error: RecordError) -> "Outcome":
        return cls(error=error)
