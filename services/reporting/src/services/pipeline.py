from __future__ import annotations

import time
from datetime import date
from typing import List, Optional, Protocol, runtime_checkable

from shared.constants import ReportType
from src.core.config import Settings, settings
from src.core.logger import get_logger
from src.core.metrics import RUN_DURATION
from src.domain.models import RenderedReport, StatisticsSnapshot
from src.infrastructure.aws.clients import AwsClients, build_clients
from src.infrastructure.s3.snapshot_store import SnapshotStore
from src.utils.windows import parse_report_date, previous_day, today_in

from .aggregator import Aggregator
from .delta import DeltaEngine
from .renderer import ReportRenderer

logger = get_logger("pipeline")


@runtime_checkable
class ReportDelivery(Protocol):
    """Hands a rendered report to its audience (chat robot, mail, ...)."""

    async def deliver(self, report: RenderedReport) -> None: ...


class ReportPipeline:
    """aggregate -> persist -> compare -> render, for one report type and day.

    Source failures only degrade the report. A failed snapshot write or a
    render error aborts the run. Delivery is best effort.
    """

    def __init__(
        self,
        clients: Optional[AwsClients] = None,
        config: Settings = settings,
        aggregator: Optional[Aggregator] = None,
        store: Optional[SnapshotStore] = None,
        delta_engine: Optional[DeltaEngine] = None,
        renderer: Optional[ReportRenderer] = None,
        delivery: Optional[ReportDelivery] = None,
    ):
        self.config = config
        if clients is None and (aggregator is None or store is None):
            clients = build_clients(config)
        self.aggregator = aggregator or Aggregator(clients, config)
        self.store = store or SnapshotStore(
            clients.s3,
            bucket=config.snapshot_bucket,
            prefix=config.snapshot_prefix,
            put_retries=config.snapshot_put_retries,
            put_base_delay=config.snapshot_put_base_delay_seconds,
        )
        self.delta_engine = delta_engine or DeltaEngine(
            self.store, self.aggregator, config
        )
        self.renderer = renderer or ReportRenderer(config)
        self.delivery = delivery

    def resolve_day(self, value: Optional[str | date] = None) -> date:
        if value is None:
            return today_in(self.config.report_timezone)
        return parse_report_date(value)

    async def _history(
        self, report_type: ReportType, snapshot: StatisticsSnapshot, day: date
    ) -> List[StatisticsSnapshot]:
        days = self.config.snapshot_history_days
        if report_type is not ReportType.MESSAGES or days < 2:
            return []
        earlier = await self.store.history(report_type, previous_day(day), days - 1)
        return earlier + [snapshot]

    async def run_report(
        self, report_type: ReportType | str, date: Optional[str | date] = None
    ) -> RenderedReport:
        report_type = (
            report_type
            if isinstance(report_type, ReportType)
            else ReportType.parse(report_type)
        )
        day = self.resolve_day(date)
        started = time.perf_counter()
        logger.info(
            "report_run_started",
            extra={"report_type": report_type.value, "date": day.isoformat()},
        )

        snapshot = await self.aggregator.collect(report_type, day)
        key = await self.store.put(report_type, snapshot)
        comparison = await self.delta_engine.compare(report_type, snapshot)
        history = await self._history(report_type, snapshot, day)
        report = self.renderer.render(report_type, snapshot, comparison, history)

        elapsed = time.perf_counter() - started
        RUN_DURATION.labels(report_type=report_type.value).observe(elapsed)
        logger.info(
            "report_run_completed",
            extra={
                "report_type": report_type.value,
                "date": day.isoformat(),
                "key": key,
                "comparison": comparison.basis,
                "degraded": sorted(snapshot.errors),
                "duration_s": round(elapsed, 3),
            },
        )

        if self.delivery is not None:
            await self._deliver(report)
        return report

    async def _deliver(self, report: RenderedReport) -> None:
        try:
            await self.delivery.deliver(report)
        except Exception as exc:  # noqa: BLE001
            logger.exception(
                "report_delivery_failed",
                extra={
                    "report_type": report.report_type.value,
                    "date": report.date,
                    "error": str(exc),
                },
            )
