# hivecrop/errors.py
"""
Typed failures raised by the persistence and service layers.

Every error carries a code, a category and the HTTP status it maps to;
error_handlers.py turns them into JSON responses via to_response().
"""

from __future__ import annotations

from enum import Enum

from pydantic import ValidationError


class ErrorCategory(str, Enum):
    VALIDATION = "validation"
    CONFLICT = "conflict"
    DATABASE = "database"
    INTERNAL = "internal"


class HiveCropError(Exception):
    """Base exception for all API failures."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.http_status = http_status

    def to_response(self) -> dict:
        return {"error": self.message}


# ---------- client errors (400-level) ----------

class RecordValidationError(HiveCropError):
    """A Hive or Crop could not be built or stored from the given fields."""

    def __init__(self, message: str):
        super().__init__(message, "VALIDATION_ERROR", ErrorCategory.VALIDATION, 400)

    @classmethod
    def from_pydantic(cls, record: str, exc: ValidationError) -> "RecordValidationError":
        parts = []
        for e in exc.errors():
            field = ".".join(str(loc) for loc in e["loc"]) or "body"
            parts.append(f"{field}: {e['msg']}")
        return cls(f"{record} validation failed: " + ", ".join(parts))


class InvalidQueryError(HiveCropError):
    """A lookup parameter was rejected before touching the database."""

    def __init__(self, message: str):
        super().__init__(message, "INVALID_QUERY", ErrorCategory.VALIDATION, 400)


class CropOverlapError(HiveCropError):
    """Same-name crop with an overlapping flowering window already exists nearby."""

    MESSAGE = "Overlapping crop exists in the same area"

    def __init__(self, name: str, conflicts: int = 1):
        super().__init__(self.MESSAGE, "CROP_OVERLAP", ErrorCategory.CONFLICT, 409)
        self.name = name
        self.conflicts = conflicts

    def to_response(self) -> dict:
        return {"message": self.message}


# ---------- infrastructure errors (500-level) ----------

class PersistenceError(HiveCropError):
    """The store failed (connection lost, query error)."""

    def __init__(self, message: str, operation: str = "query"):
        super().__init__(message, "DATABASE_ERROR", ErrorCategory.DATABASE, 500)
        self.operation = operation
