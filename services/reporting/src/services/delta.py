"""Day-over-day comparison of statistics snapshots."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Optional

from shared.constants import ReportType
from src.core.config import Settings, settings
from src.core.errors import SnapshotUnreadable
from src.core.logger import get_logger
from src.core.metrics import SNAPSHOT_READ_FALLBACKS
from src.domain.models import Delta, StatisticsSnapshot, snapshot_model
from src.infrastructure.s3.snapshot_store import SnapshotStore
from src.utils.windows import previous_day

from .aggregator import Aggregator

logger = get_logger("delta")

BASIS_STORED = "stored"
BASIS_LIVE = "live"
BASIS_BASELINE = "baseline"


def compute_deltas(
    today: StatisticsSnapshot, yesterday: StatisticsSnapshot
) -> Dict[str, Delta]:
    """One Delta per numeric leaf present on either side.

    A leaf missing from one side counts as zero there. ``delta_percent`` is
    None when yesterday's value is zero.
    """
    current = today.numeric_leaves()
    previous = yesterday.numeric_leaves()
    paths = list(current) + [path for path in previous if path not in current]
    deltas: Dict[str, Delta] = {}
    for path in paths:
        now = current.get(path, 0)
        before = previous.get(path, 0)
        change = now - before
        deltas[path] = Delta(
            path=path,
            today=now,
            yesterday=before,
            delta=change,
            delta_percent=(change / before * 100) if before else None,
        )
    return deltas


@dataclass
class Comparison:
    previous: StatisticsSnapshot
    basis: str
    deltas: Dict[str, Delta] = field(default_factory=dict)


class DeltaEngine:
    """Resolves the previous day and diffs today's snapshot against it.

    Resolution order: the stored snapshot; when nothing was stored and live
    fallback is enabled for the report type, a fresh (unpersisted)
    aggregation of that day; otherwise the zero baseline. A stored but
    unreadable snapshot always falls back to the zero baseline.
    """

    def __init__(
        self,
        store: SnapshotStore,
        aggregator: Optional[Aggregator] = None,
        config: Settings = settings,
    ):
        self.store = store
        self.aggregator = aggregator
        self.config = config

    def live_fallback_allowed(self, report_type: ReportType) -> bool:
        return (
            self.config.comparison_live_fallback
            and self.aggregator is not None
            and ReportType(report_type).value in self.config.live_fallback_report_types
        )

    async def resolve_previous(
        self, report_type: ReportType, day: date
    ) -> tuple[StatisticsSnapshot, str]:
        yesterday = previous_day(day)
        baseline = snapshot_model(report_type).zero(yesterday.isoformat())
        try:
            stored = await self.store.fetch(report_type, yesterday)
        except SnapshotUnreadable as exc:
            SNAPSHOT_READ_FALLBACKS.labels(reason="unreadable").inc()
            logger.warning("previous_snapshot_unreadable", extra=exc.to_dict())
            return baseline, BASIS_BASELINE

        if stored is not None:
            return stored, BASIS_STORED

        if self.live_fallback_allowed(report_type):
            logger.info(
                "previous_snapshot_live_fetch",
                extra={"report_type": ReportType(report_type).value, "date": yesterday.isoformat()},
            )
            live = await self.aggregator.collect(report_type, yesterday)
            return live, BASIS_LIVE

        SNAPSHOT_READ_FALLBACKS.labels(reason="absent").inc()
        return baseline, BASIS_BASELINE

    async def compare(
        self, report_type: ReportType, today: StatisticsSnapshot
    ) -> Comparison:
        day = date.fromisoformat(today.date)
        previous, basis = await self.resolve_previous(report_type, day)
        return Comparison(
            previous=previous, basis=basis, deltas=compute_deltas(today, previous)
        )
