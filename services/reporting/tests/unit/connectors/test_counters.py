from unittest.mock import MagicMock

import pytest
from src.connectors.counters import DirectCounter, PaginatedCounter
from src.core.errors import SourceUnavailable


class TestDirectCounter:
    @pytest.mark.asyncio
    async def test_sums_datapoints(self, window):
        client = MagicMock()
        client.get_metric_statistics.return_value = {
            "Datapoints": [{"Sum": 120.0}, {"Sum": 30.0}]
        }
        result = await DirectCounter(client, "Connect.AuthError").fetch(window)

        assert result.ok
        assert result.value == 150
        kwargs = client.get_metric_statistics.call_args.kwargs
        assert kwargs["MetricName"] == "Connect.AuthError"
        assert kwargs["Namespace"] == "AWS/IoT"
        assert kwargs["Period"] == 86400
        assert kwargs["Statistics"] == ["Sum"]
        assert kwargs["StartTime"] == window.start_utc
        assert kwargs["EndTime"] == window.end_exclusive_utc

    @pytest.mark.asyncio
    async def test_no_datapoints_is_zero_not_error(self, window):
        client = MagicMock()
        client.get_metric_statistics.return_value = {"Datapoints": []}
        result = await DirectCounter(client, "Connect.Throttle").fetch(window)

        assert result.ok
        assert result.value == 0

    @pytest.mark.asyncio
    async def test_backend_failure_becomes_marker(self, window):
        client = MagicMock()
        client.get_metric_statistics.side_effect = RuntimeError("throttled")
        result = await DirectCounter(client, "Connect.Throttle").fetch(window)

        assert not result.ok
        assert result.value == 0
        assert isinstance(result.error, SourceUnavailable)
        assert result.error.source_name == "Connect.Throttle"
        assert "throttled" in str(result.error)


class TestPaginatedCounter:
    @pytest.mark.asyncio
    async def test_follows_tokens_to_the_end(self, window):
        client = MagicMock()
        client.get_metric_data.side_effect = [
            {"MetricDataResults": [{"Values": [100.0, 200.0]}], "NextToken": "p2"},
            {"MetricDataResults": [{"Values": [300.0]}], "NextToken": "p3"},
            {"MetricDataResults": [{"Values": [400.0, 5.0]}]},
        ]
        counter = PaginatedCounter(client, "PublishIn.Success", page_delay=0)
        result = await counter.fetch(window)

        assert result.ok
        assert result.value == 1005
        assert client.get_metric_data.call_count == 3
        calls = client.get_metric_data.call_args_list
        assert "NextToken" not in calls[0].kwargs
        assert calls[1].kwargs["NextToken"] == "p2"
        assert calls[2].kwargs["NextToken"] == "p3"

    @pytest.mark.asyncio
    async def test_uses_hourly_sum(self, window):
        client = MagicMock()
        client.get_metric_data.return_value = {"MetricDataResults": []}
        await PaginatedCounter(client, "PublishOut.Success", page_delay=0).fetch(window)

        query = client.get_metric_data.call_args.kwargs["MetricDataQueries"][0]
        assert query["MetricStat"]["Period"] == 3600
        assert query["MetricStat"]["Stat"] == "Sum"
        assert query["MetricStat"]["Metric"]["MetricName"] == "PublishOut.Success"

    @pytest.mark.asyncio
    async def test_page_ceiling_stops_endless_tokens(self, window):
        client = MagicMock()
        client.get_metric_data.return_value = {
            "MetricDataResults": [{"Values": [1.0]}],
            "NextToken": "again",
        }
        counter = PaginatedCounter(client, "PublishIn.Success", page_delay=0, max_pages=3)
        result = await counter.fetch(window)

        assert result.ok
        assert client.get_metric_data.call_count == 3
        assert result.value == 3

    @pytest.mark.asyncio
    async def test_failure_mid_pagination_degrades(self, window):
        client = MagicMock()
        client.get_metric_data.side_effect = [
            {"MetricDataResults": [{"Values": [10.0]}], "NextToken": "p2"},
            RuntimeError("boom"),
        ]
        result = await PaginatedCounter(client, "PublishIn.Success", page_delay=0).fetch(
            window
        )

        assert not result.ok
        assert result.value == 0
