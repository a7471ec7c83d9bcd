"""CloudWatch counter connectors."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

from src.core.config import settings
from src.core.errors import SourceError
from src.core.metrics import COUNTER_PAGES
from src.infrastructure.aws.clients import call_aws
from src.utils.windows import DayWindow

from .base import SourceConnector


def as_count(value: float) -> int:
    # CloudWatch sums arrive as floats even for event counts
    return int(round(value or 0))


class DirectCounter(SourceConnector[int]):
    """One GetMetricStatistics call summed over the window.

    No datapoints means no occurrences, not an error.
    """

    kind = "direct_counter"

    def __init__(
        self,
        client: Any,
        metric_name: str,
        namespace: str = settings.cloudwatch_namespace,
        period: int = settings.cloudwatch_daily_period_seconds,
        dimensions: Optional[List[Dict[str, str]]] = None,
    ):
        super().__init__(metric_name)
        self.client = client
        self.metric_name = metric_name
        self.namespace = namespace
        self.period = period
        self.dimensions = dimensions or []

    async def _fetch(self, window: DayWindow, **params: Any) -> int:
        response = await call_aws(
            self.client.get_metric_statistics,
            Namespace=self.namespace,
            MetricName=self.metric_name,
            StartTime=window.start_utc,
            EndTime=window.end_exclusive_utc,
            Period=self.period,
            Statistics=["Sum"],
            Dimensions=self.dimensions,
        )
        datapoints = response.get("Datapoints") or []
        total = as_count(sum(point.get("Sum", 0) for point in datapoints))
        self.logger.debug(
            "counter_fetched",
            extra={"metric": self.metric_name, "value": total, "points": len(datapoints)},
        )
        return total

    def default(self, error: SourceError) -> int:
        return 0


class PaginatedCounter(SourceConnector[int]):
    """GetMetricData at a finer period, following NextToken to the end.

    Pages are spaced by a short delay to stay under the API rate limit. The
    loop also stops at ``max_pages`` so a backend that keeps handing out
    tokens cannot stall the run.
    """

    kind = "paginated_counter"

    def __init__(
        self,
        client: Any,
        metric_name: str,
        namespace: str = settings.cloudwatch_namespace,
        period: int = settings.cloudwatch_page_period_seconds,
        page_delay: float = settings.cloudwatch_page_delay_seconds,
        max_pages: int = settings.cloudwatch_max_pages,
        dimensions: Optional[List[Dict[str, str]]] = None,
    ):
        super().__init__(metric_name)
        self.client = client
        self.metric_name = metric_name
        self.namespace = namespace
        self.period = period
        self.page_delay = page_delay
        self.max_pages = max_pages
        self.dimensions = dimensions or []

    def _request(self, window: DayWindow) -> Dict[str, Any]:
        return {
            "MetricDataQueries": [
                {
                    "Id": "m0",
                    "MetricStat": {
                        "Metric": {
                            "Namespace": self.namespace,
                            "MetricName": self.metric_name,
                            "Dimensions": self.dimensions,
                        },
                        "Period": self.period,
                        "Stat": "Sum",
                    },
                    "ReturnData": True,
                }
            ],
            "StartTime": window.start_utc,
            "EndTime": window.end_exclusive_utc,
            "ScanBy": "TimestampAscending",
        }

    async def _fetch(self, window: DayWindow, **params: Any) -> int:
        request = self._request(window)
        running = 0.0
        pages = 0
        token: Optional[str] = None
        while True:
            if token:
                request["NextToken"] = token
            response = await call_aws(self.client.get_metric_data, **request)
            pages += 1
            COUNTER_PAGES.inc()
            for result in response.get("MetricDataResults") or []:
                running += sum(result.get("Values") or [])
            token = response.get("NextToken")
            if not token:
                break
            if pages >= self.max_pages:
                self.logger.warning(
                    "pagination_ceiling_reached",
                    extra={"metric": self.metric_name, "pages": pages},
                )
                break
            await asyncio.sleep(self.page_delay)
        total = as_count(running)
        self.logger.debug(
            "counter_fetched",
            extra={"metric": self.metric_name, "value": total, "pages": pages},
        )
        return total

    def default(self, error: SourceError) -> int:
        return 0
