from datetime import date
from enum import Enum


class ReportType(str, Enum):
    """Report families produced by the daily job."""

    THINGS = "daily-statistic"
    MESSAGES = "message-statistic"
    ERRORS = "error-statistic"

    @classmethod
    def parse(cls, value: str) -> "ReportType":
        """Accept either the stored stem or the enum member name."""
        try:
            return cls(value)
        except ValueError:
            try:
                return cls[value.upper()]
            except KeyError:
                raise ValueError(f"Unknown report type: {value}") from None


class SnapshotKeys:
    """Centralised object-storage key pattern definitions"""

    # One JSON document per report type per calendar day
    DAILY_SNAPSHOT = "{year}/{month}/{report_type}-{date}.json"

    @classmethod
    def snapshot_key(cls, report_type: ReportType | str, day: date) -> str:
        """Generate the calendar-navigable key for a report day."""
        stem = report_type.value if isinstance(report_type, ReportType) else report_type
        return cls.DAILY_SNAPSHOT.format(
            year=f"{day.year:04d}",
            month=f"{day.month:02d}",
            report_type=stem,
            date=day.isoformat(),
        )

    @classmethod
    def with_prefix(cls, prefix: str, report_type: ReportType | str, day: date) -> str:
        if prefix and not prefix.endswith("/"):
            prefix = prefix + "/"
        return f"{prefix}{cls.snapshot_key(report_type, day)}"
