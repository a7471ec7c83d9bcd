import pytest
from pydantic import ValidationError
from shared.constants import ReportType
from src.domain.models import (
    ContributorRecord,
    ContributorReport,
    Delta,
    ErrorStatistics,
    MessageStatistics,
    RenderedReport,
    ThingStatistics,
    load_snapshot,
    percentage,
    snapshot_model,
)


class TestPercentage:
    def test_zero_denominator(self):
        assert percentage(5, 0) == 0.0

    def test_rounds_to_two_digits(self):
        assert percentage(1, 3) == 33.33


class TestThingStatistics:
    def test_totals(self):
        stats = ThingStatistics(
            date="2024-05-01",
            account_thing_count=10,
            device_table_count=20,
            gateway_thing_count=5,
        ).with_totals()
        assert stats.device_thing_count == 25
        assert stats.total_thing_count == 35

    def test_document_uses_camel_case(self):
        doc = ThingStatistics(date="2024-05-01").to_document()
        assert doc["reportType"] == "daily-statistic"
        assert "accountThingCount" in doc
        assert "totalThingCount" in doc


class TestMessageStatistics:
    def test_success_rates_and_totals(self):
        stats = MessageStatistics(
            date="2024-05-01",
            inbound={"success": 990, "clientError": 10},
            outbound={"success": 500},
        ).with_totals()
        assert stats.inbound.total == 1000
        assert stats.inbound.success_rate == 99.0
        assert stats.outbound.success_rate == 100.0
        assert stats.total_messages == 1500

    def test_empty_traffic_has_zero_rate(self):
        stats = MessageStatistics(date="2024-05-01").with_totals()
        assert stats.connections.success_rate == 0.0


class TestErrorStatistics:
    def test_category_and_overall_totals(self):
        stats = ErrorStatistics(
            date="2024-05-01",
            connectionErrors={"authError": 1, "clientError": 2, "throttle": 3},
            publishInErrors={"serverError": 4},
            subscribeErrors={"throttle": 5},
        ).with_totals()
        assert stats.connection_errors.total == 6
        assert stats.subscribe_errors.total == 5
        assert stats.total_errors == 15

    def test_numeric_leaves_skip_lists(self):
        stats = ErrorStatistics(date="2024-05-01")
        stats.duplicate_clients.applications.duplicate_clients.append(
            ContributorRecord(rank=1, client_id="c", duplicate_count=2)
        )
        leaves = stats.numeric_leaves()
        assert "duplicateClients.applications.totalEvents" in leaves
        assert "connectionErrors.throttle" in leaves
        assert not any("rank" in path for path in leaves)


class TestLoading:
    def test_missing_fields_load_as_zero(self):
        stats = load_snapshot(ReportType.THINGS, {"date": "2024-05-01"})
        assert isinstance(stats, ThingStatistics)
        assert stats.account_thing_count == 0

    def test_other_report_type_is_rejected(self):
        with pytest.raises(ValidationError):
            load_snapshot(
                ReportType.THINGS,
                {"date": "2024-05-01", "reportType": "message-statistic"},
            )

    def test_bad_date_is_rejected(self):
        with pytest.raises(ValidationError):
            load_snapshot(ReportType.THINGS, {"date": "05/01/2024"})

    def test_zero_baseline(self):
        zero = snapshot_model(ReportType.MESSAGES).zero("2024-04-30")
        assert zero.date == "2024-04-30"
        assert set(zero.numeric_leaves().values()) == {0}

    def test_failed_matches_group_prefix(self):
        stats = ThingStatistics(
            date="2024-05-01", errors={"deviceTableCount": "QueryTimeout: slow"}
        )
        assert stats.failed("deviceTableCount")
        assert not stats.failed("device")
        assert not stats.failed("accountThingCount")


class TestContributorReport:
    def test_error_clears_totals(self):
        report = ContributorReport(
            type="device",
            total_events=9,
            duplicate_clients=[ContributorRecord(rank=1, client_id="x")],
            error="SourceUnavailable: down",
        )
        assert report.total_events == 0
        assert report.duplicate_clients == []

    def test_document_alias(self):
        doc = ContributorReport.failed("application", "boom").to_document()
        assert doc["type"] == "application"
        assert doc["error"] == "boom"


def test_delta_trend():
    assert Delta(path="x", delta=2).trend == "up"
    assert Delta(path="x", delta=-2).trend == "down"
    assert Delta(path="x").trend == "flat"


def test_rendered_report_message():
    report = RenderedReport(
        report_type=ReportType.ERRORS, date="2024-05-01", title="T", text="body"
    )
    assert report.as_message() == {
        "msgtype": "markdown",
        "markdown": {"title": "T", "text": "body"},
    }
