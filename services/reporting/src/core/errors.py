"""Error taxonomy for report runs.

Source level errors (``SourceError`` and subclasses) never escape a
connector; they travel as markers on ``SourceResult`` and on the snapshot.
``SnapshotUnreadable`` is absorbed by the delta step. Only
``PersistenceFailure`` and ``RenderFailure`` abort a run.
"""

from __future__ import annotations

from typing import Any, Optional


class ReportingError(Exception):
    """Base exception for the reporting pipeline."""

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        original_error: Optional[BaseException] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.source_name = source_name
        self.original_error = original_error
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "error": self.message,
            "source_name": self.source_name,
            "original_error": str(self.original_error) if self.original_error else None,
            "context": self.context,
        }

    @property
    def marker(self) -> str:
        """Short text stored in snapshots and shown in reports."""
        return f"{self.__class__.__name__}: {self.message}"

    def __str__(self) -> str:
        parts = [self.message]
        if self.source_name:
            parts.append(f"[source={self.source_name}]")
        if self.original_error:
            parts.append(f"(caused by: {self.original_error})")
        return " ".join(parts)


class SourceError(ReportingError):
    """A data source could not produce its value."""


class SourceUnavailable(SourceError):
    """The backend call raised or returned something unusable."""


class QueryTimeout(SourceError):
    """An async query did not reach a terminal state within its poll budget."""

    def __init__(self, message: str, attempts: int = 0, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.attempts = attempts


class QueryFailed(SourceError):
    """The query engine reported an explicit failure."""

    def __init__(self, message: str, reason: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.reason = reason


class SnapshotUnreadable(ReportingError):
    """A stored snapshot exists but cannot be read or parsed."""


class PersistenceFailure(ReportingError):
    """Today's snapshot could not be written."""


class RenderFailure(ReportingError):
    """Statistics handed to the renderer do not match their schema."""
