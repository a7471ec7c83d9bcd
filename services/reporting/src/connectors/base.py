"""Common contract for every backend data source.

A connector turns one backend call (or call sequence) into a value for a
report window. ``fetch`` never raises for backend trouble: the failure comes
back as a zero-valued ``SourceResult`` carrying the error, so callers can
tell "zero events" from "source unavailable".
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

from src.core.errors import SourceError, SourceUnavailable
from src.core.logger import get_logger
from src.core.metrics import SOURCE_FETCHES
from src.utils.windows import DayWindow

T = TypeVar("T")


@dataclass(frozen=True)
class SourceResult(Generic[T]):
    value: T
    error: Optional[SourceError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class SourceConnector(ABC, Generic[T]):
    """Base class: subclasses implement ``_fetch`` and ``default``."""

    kind: str = "source"

    def __init__(self, name: str):
        self.name = name
        self.logger = get_logger(f"connectors.{self.kind}")

    @abstractmethod
    async def _fetch(self, window: DayWindow, **params: Any) -> T:
        """Produce the value or raise."""

    @abstractmethod
    def default(self, error: SourceError) -> T:
        """Zero value reported when the source fails."""

    async def fetch(self, window: DayWindow, **params: Any) -> SourceResult[T]:
        try:
            value = await self._fetch(window, **params)
        except asyncio.CancelledError:
            raise
        except SourceError as exc:
            return self._degraded(exc)
        except Exception as exc:  # noqa: BLE001
            return self._degraded(
                SourceUnavailable(
                    f"{self.kind} {self.name} failed",
                    source_name=self.name,
                    original_error=exc,
                )
            )
        SOURCE_FETCHES.labels(kind=self.kind, outcome="ok").inc()
        return SourceResult(value)

    def _degraded(self, error: SourceError) -> SourceResult[T]:
        if error.source_name is None:
            error.source_name = self.name
        SOURCE_FETCHES.labels(kind=self.kind, outcome=type(error).__name__).inc()
        self.logger.warning(
            "source_degraded",
            extra={"source": self.name, **error.to_dict()},
        )
        return SourceResult(self.default(error), error)
