"""
Error types and helpers for turning internal failures into safe messages.

Internal details (SQL, bucket names, stack traces) are logged, never sent to
clients. Clients only ever see short generic messages and an HTTP status.
"""
import logging
from typing import Optional

logger = logging.getLogger(__name__)

# Generic user-facing messages, keyed by failure kind
ERROR_MESSAGES = {
    "no_file": "No video file received",
    "too_large": "File too large",
    "storage": "Failed to store the video file",
    "database": "Failed to save the video",
    "not_found": "Video not found",
    "forbidden": "Access denied",
    "general": "Internal server error",
}


class ObjectStoreError(Exception):
    """Raised when the object store rejects or fails an operation."""

    def __init__(self, message: str, key: Optional[str] = None):
        self.message = message
        self.key = key
        super().__init__(message)


class UploadTooLargeError(Exception):
    """Raised while streaming an upload once it exceeds the size limit."""

    def __init__(self, max_size: int):
        self.max_size = max_size
        super().__init__(f"Upload exceeds maximum size of {max_size} bytes")


def truncate_string(value: Optional[str], max_length: int, suffix: str = "...") -> Optional[str]:
    """
    Truncate a string to max_length characters, including the suffix.

    Returns None for None input and the original string if it already fits.
    """
    if value is None:
        return None
    if len(value) <= max_length:
        return value
    if max_length <= len(suffix):
        return value[:max_length]
    return value[: max_length - len(suffix)] + suffix


def truncate_error(error: Optional[str], max_length: int) -> Optional[str]:
    """Truncate an error message for display (CLI output, logs)."""
    return truncate_string(error, max_length)


def format_size(num_bytes: int) -> str:
    """Human-readable size used in upload limit messages."""
    if num_bytes >= 1024 * 1024 * 1024:
        return f"{num_bytes / (1024 * 1024 * 1024):.1f} GB"
    if num_bytes >= 1024 * 1024:
        return f"{num_bytes / (1024 * 1024):.0f} MB"
    return f"{num_bytes} bytes"


def _failed_unique_columns(error_str: str) -> set:
    """
    Column names from a SQLite unique error.

    "UNIQUE constraint failed: videos.id, videos.slug" -> {"id", "slug"}
    """
    columns = error_str.partition("unique constraint failed:")[2].split("\n", 1)[0]
    return {entry.strip().rsplit(".", 1)[-1] for entry in columns.split(",") if entry.strip()}


def is_unique_violation(exc: Exception, column: Optional[str] = None) -> bool:
    """
    Check whether an exception is a unique/primary key constraint violation.

    Works for SQLite ("UNIQUE constraint failed: videos.id") and PostgreSQL
    (asyncpg UniqueViolationError, SQLSTATE 23505), raw or wrapped in a
    SQLAlchemy IntegrityError. When column is given,
    SQLite messages must also name that column; PostgreSQL messages name
    the constraint instead, so only the error class is checked there.
    """
    if getattr(exc, "sqlstate", None) == "23505" or type(exc).__name__ == "UniqueViolationError":
        return True

    error_str = str(exc).lower()
    if "unique constraint failed" in error_str:
        return column is None or column.lower() in _failed_unique_columns(error_str)
    if "duplicate key value violates unique constraint" in error_str:
        return True

    # SQLAlchemy wraps the driver error in .orig
    for inner in (getattr(exc, "orig", None), exc.__cause__):
        if inner is not None and inner is not exc:
            return is_unique_violation(inner, column=column)

    return False
