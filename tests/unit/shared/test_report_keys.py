from datetime import date

import pytest

from shared.constants import Environment, ReportType, SnapshotKeys


class TestReportType:
    def test_parse_value_and_name(self):
        assert ReportType.parse("message-statistic") is ReportType.MESSAGES
        assert ReportType.parse("errors") is ReportType.ERRORS

    def test_parse_unknown(self):
        with pytest.raises(ValueError):
            ReportType.parse("weekly")


class TestSnapshotKeys:
    def test_calendar_layout(self):
        key = SnapshotKeys.snapshot_key(ReportType.ERRORS, date(2024, 1, 9))
        assert key == "2024/01/error-statistic-2024-01-09.json"

    def test_prefix_gets_separator(self):
        key = SnapshotKeys.with_prefix("iotcore-logs", "daily-statistic", date(2024, 5, 1))
        assert key == "iotcore-logs/2024/05/daily-statistic-2024-05-01.json"

    def test_empty_prefix(self):
        key = SnapshotKeys.with_prefix("", ReportType.THINGS, date(2024, 5, 1))
        assert key == "2024/05/daily-statistic-2024-05-01.json"


@pytest.mark.parametrize(
    "env,plain", [("development", True), ("TESTING", True), ("production", False), ("staging", False)]
)
def test_plain_logs_for_local_environments(env, plain):
    assert Environment.wants_plain_logs(env) is plain
