"""Error taxonomy shared by the directory, catalog, ledger and notification code.

Each error carries the HTTP status it maps to and a human-readable message;
``main`` registers a single handler that renders them as
``{"success": false, "message": ...}``.
"""
from __future__ import annotations


class JobBoardError(Exception):
    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(JobBoardError):
    """Required fields missing or malformed."""

    status_code = 400


class NotFound(JobBoardError):
    """A referenced id does not resolve."""

    status_code = 404


class Conflict(JobBoardError):
    """Duplicate email at registration."""

    status_code = 400


class AuthError(JobBoardError):
    status_code = 400


class InternalError(JobBoardError):
    status_code = 500


class StorageError(InternalError):
    """The database rejected a read or write."""
