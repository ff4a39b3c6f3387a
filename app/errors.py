from __future__ import annotations


class ComplianceError(Exception):
    """Base class for failures surfaced to callers of the compliance core."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ComplianceError, ValueError):
    """Raised when input is malformed or missing before any mutation happens."""


class ConflictError(ComplianceError):
    """Raised when an employee name collides with an existing one."""


class NotFoundError(ComplianceError, LookupError):
    """Raised when a referenced employee or shift does not exist."""


class StorageError(ComplianceError, OSError):
    """Raised when the database file cannot be read or written."""
