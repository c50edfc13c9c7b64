"""
Exception classes for schemasync.
"""

import logging
from typing import Any, Dict, Optional


class SchemaSyncError(Exception):
    """Base exception for all schemasync errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def __str__(self) -> str:
        result = self.message
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            result += f" [{details_str}]"
        if self.cause:
            result += f" (caused by: {self.cause})"
        return result


class ConfigurationError(SchemaSyncError):
    """Raised when configuration or a write batch is malformed."""

    pass


class BackendError(SchemaSyncError):
    """Raised when a backend call fails.

    ``level`` is the logging level the caller asked the failure to be
    reported at; the error is always propagated, never swallowed.
    """

    def __init__(
        self,
        message: str,
        level: int = logging.ERROR,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message, details, cause)
        self.level = level


class DatabaseConnectionError(BackendError):
    """Raised when there's an error establishing or maintaining database connections."""

    pass


class SessionStateError(SchemaSyncError):
    """Raised when a schema session operation is used in the wrong state."""

    pass


class SchemaCommitError(SchemaSyncError):
    """Raised when one or more staged table changes failed to apply."""

    def __init__(self, result: Any) -> None:
        failed = [outcome.table for outcome in result.failed]
        super().__init__(
            f"Failed to apply schema changes for {len(failed)} table(s)",
            {"tables": ", ".join(failed)},
        )
        self.result = result


class StaleSpecWarning(UserWarning):
    """A stored spec differs from the required one only in formatting."""

    pass
