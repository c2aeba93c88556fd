"""Domain exceptions raised below the HTTP layer.

Routers translate these into ``HTTPException`` with the status code that the
operation calls for; nothing here knows about HTTP.
"""

from __future__ import annotations

from typing import Optional


class TaskcoreError(Exception):
    """Base class for all taskcore errors."""


class StoreError(TaskcoreError):
    """The database failed or rejected an operation."""

    def __init__(self, operation: str, message: str, *, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.operation = operation
        self.cause = cause

    def __str__(self) -> str:
        return f"{self.operation}: {self.args[0]}"


class InvalidTokenError(TaskcoreError):
    """A bearer credential failed verification (bad signature, expired, garbled)."""
