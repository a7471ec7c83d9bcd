"""Top-N contributor analyses (CloudWatch Contributor Insights)."""

from __future__ import annotations

from typing import Any, Dict, List

from src.core.config import settings
from src.core.errors import SourceError
from src.domain.models import (
    UNKNOWN_SOURCE,
    ContributorRecord,
    ContributorReport,
    percentage,
)
from src.infrastructure.aws.clients import call_aws
from src.utils.windows import DayWindow, normalize_period

from .base import SourceConnector
from .counters import as_count


def rank_contributors(
    contributors: List[Dict[str, Any]], total: float, limit: int
) -> List[ContributorRecord]:
    """Order by descending count (stable for ties) and number ranks 1..n."""
    ordered = sorted(
        contributors,
        key=lambda item: item.get("ApproximateAggregateValue") or 0,
        reverse=True,
    )[:limit]
    records = []
    for rank, item in enumerate(ordered, start=1):
        keys = item.get("Keys") or []
        count = as_count(item.get("ApproximateAggregateValue"))
        records.append(
            ContributorRecord(
                rank=rank,
                client_id=keys[0] if keys else UNKNOWN_SOURCE,
                source_ip=keys[1] if len(keys) > 1 and keys[1] else UNKNOWN_SOURCE,
                duplicate_count=count,
                percentage=percentage(count, total),
            )
        )
    return records


class ContributorReportConnector(SourceConnector[ContributorReport]):
    kind = "contributor_report"

    def __init__(
        self,
        client: Any,
        rule_name: str,
        report_kind: str,
        top_n: int = settings.contributor_top_n,
        min_period: int = settings.contributor_min_period_seconds,
        max_period: int = settings.contributor_max_period_seconds,
    ):
        super().__init__(rule_name)
        self.client = client
        self.rule_name = rule_name
        self.report_kind = report_kind
        self.top_n = top_n
        self.min_period = min_period
        self.max_period = max_period

    def period_for(self, window: DayWindow) -> int:
        return normalize_period(window.seconds, self.min_period, self.max_period)

    async def _fetch(self, window: DayWindow, **params: Any) -> ContributorReport:
        response = await call_aws(
            self.client.get_insight_rule_report,
            RuleName=self.rule_name,
            StartTime=window.start_utc,
            EndTime=window.end_exclusive_utc,
            Period=self.period_for(window),
            MaxContributorCount=self.top_n,
            OrderBy="Sum",
        )
        total = as_count(response.get("AggregateValue"))
        records = rank_contributors(
            response.get("Contributors") or [], total, self.top_n
        )
        self.logger.info(
            "contributors_fetched",
            extra={
                "rule": self.rule_name,
                "total_events": total,
                "contributors": len(records),
            },
        )
        return ContributorReport(
            type=self.report_kind,
            total_events=total,
            unique_clients=as_count(response.get("ApproximateUniqueCount")),
            duplicate_clients=records,
        )

    def default(self, error: SourceError) -> ContributorReport:
        return ContributorReport.failed(self.report_kind, error.marker)
