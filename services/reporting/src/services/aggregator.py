from __future__ import annotations

import asyncio
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional

from shared.constants import ReportType
from src.core.config import Settings, settings
from src.core.logger import get_logger
from src.domain.models import (
    ReportModel,
    StatisticsSnapshot,
    load_snapshot,
    utc_timestamp,
)
from src.infrastructure.aws.clients import AwsClients
from src.utils.windows import DayWindow

from .plans import PlanEntry, build_plan

logger = get_logger("aggregator")


def assign_path(document: Dict[str, Any], path: str, value: Any) -> None:
    """Set ``value`` at a dotted path, creating intermediate mappings."""
    *parents, leaf = path.split(".")
    node = document
    for part in parents:
        node = node.setdefault(part, {})
    node[leaf] = value.to_document() if isinstance(value, ReportModel) else value


class Aggregator:
    """Fans out to every connector of a report type and builds the snapshot.

    All connectors share one day window. A failing source contributes its
    zero default plus an entry in ``errors``; the rest of the snapshot is
    unaffected. Derived totals are computed after the merge.
    """

    def __init__(
        self,
        clients: AwsClients,
        config: Settings = settings,
        plan_builder: Callable[[ReportType, AwsClients, Settings], List[PlanEntry]] = build_plan,
    ):
        self.clients = clients
        self.config = config
        self.plan_builder = plan_builder

    def window(self, day: date) -> DayWindow:
        return DayWindow.for_day(day, self.config.report_timezone)

    async def collect(
        self,
        report_type: ReportType,
        day: date,
        now: Optional[datetime] = None,
    ) -> StatisticsSnapshot:
        report_type = ReportType(report_type)
        window = self.window(day)
        plan = self.plan_builder(report_type, self.clients, self.config)

        results = await asyncio.gather(*(entry.connector.fetch(window) for entry in plan))

        document: Dict[str, Any] = {
            "reportType": report_type.value,
            "date": window.date_key,
            "timestamp": utc_timestamp(now),
        }
        errors: Dict[str, str] = {}
        for entry, result in zip(plan, results):
            assign_path(document, entry.path, result.value)
            if result.error is not None:
                errors[entry.path] = result.error.marker
        document["errors"] = errors

        snapshot = load_snapshot(report_type, document).with_totals()
        logger.info(
            "report_aggregated",
            extra={
                "report_type": report_type.value,
                "date": window.date_key,
                "sources": len(plan),
                "degraded": sorted(errors),
            },
        )
        return snapshot
