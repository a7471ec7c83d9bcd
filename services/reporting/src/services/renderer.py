"""Markdown rendering of daily statistics.

Rendering is pure: the same snapshot, comparison and history always give the
same text. The generation time shown in the header is the snapshot's own
timestamp, never the clock.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from pydantic import ValidationError

from shared.constants import ReportType
from src.core.config import Settings, settings
from src.core.errors import RenderFailure
from src.domain.models import (
    ContributorReport,
    Delta,
    ErrorStatistics,
    MessageStatistics,
    RenderedReport,
    StatisticsSnapshot,
    ThingStatistics,
    load_snapshot,
    percentage,
    snapshot_model,
)
from src.utils.windows import resolve_timezone

from .delta import Comparison

ARROW_UP = "▲"
ARROW_DOWN = "▼"
ARROW_FLAT = "＝"
ELLIPSIS = "…"
UNAVAILABLE = "unavailable"

TITLES = {
    ReportType.THINGS: "IoT Thing Statistics",
    ReportType.MESSAGES: "IoT Message Statistics",
    ReportType.ERRORS: "IoT Error Statistics",
}


TREND_ARROWS = {"up": ARROW_UP, "down": ARROW_DOWN, "flat": ARROW_FLAT}


def format_number(value: float) -> str:
    if isinstance(value, float) and not value.is_integer():
        return f"{value:,.2f}"
    return f"{int(value):,}"


def format_delta(delta: Optional[Delta], rate: bool = False) -> str:
    if delta is None:
        return "-"
    arrow = TREND_ARROWS[delta.trend]
    if rate:
        return f"{arrow} {delta.delta:+.2f} pp"
    text = f"{arrow} {'+' if delta.delta > 0 else ''}{format_number(delta.delta)}"
    if delta.delta_percent is not None:
        text += f" ({delta.delta_percent:+.2f}%)"
    elif delta.delta:
        text += " (new)"
    return text


def elide(text: str, width: int) -> str:
    if width <= 0 or len(text) <= width:
        return text
    return text[: max(width - 1, 0)] + ELLIPSIS


def classify_severity(total: float, thresholds: Mapping[str, int]) -> str:
    """Highest label whose threshold ``total`` reaches; "normal" below all."""
    level = "normal"
    for label, floor in sorted(thresholds.items(), key=lambda item: item[1]):
        if total >= floor:
            level = label
    return level


@dataclass(frozen=True)
class Row:
    label: str
    path: str
    share_of: Optional[str] = None
    depends: Tuple[str, ...] = ()
    rate: bool = False


class ReportRenderer:
    def __init__(self, config: Settings = settings):
        self.config = config

    # ---- entry point ----

    def render(
        self,
        report_type: ReportType,
        snapshot: StatisticsSnapshot | Dict[str, Any],
        comparison: Optional[Comparison] = None,
        history: Optional[Sequence[StatisticsSnapshot]] = None,
    ) -> RenderedReport:
        report_type = ReportType(report_type)
        snapshot = self._coerce(report_type, snapshot)
        deltas = comparison.deltas if comparison else {}
        leaves = snapshot.numeric_leaves()

        lines = self._header(report_type, snapshot)
        if isinstance(snapshot, ThingStatistics):
            lines += self._things(snapshot, leaves, deltas)
        elif isinstance(snapshot, MessageStatistics):
            lines += self._messages(snapshot, leaves, deltas)
            if history:
                lines += self._trend(history)
        elif isinstance(snapshot, ErrorStatistics):
            lines += self._errors(snapshot, leaves, deltas)
        lines += self._footer(report_type, snapshot, comparison)

        title = f"{TITLES[report_type]} {snapshot.date}"
        return RenderedReport(
            report_type=report_type,
            date=snapshot.date,
            title=title,
            text="\n".join(lines).rstrip() + "\n",
        )

    def _coerce(
        self, report_type: ReportType, snapshot: StatisticsSnapshot | Dict[str, Any]
    ) -> StatisticsSnapshot:
        if isinstance(snapshot, dict):
            try:
                return load_snapshot(report_type, snapshot)
            except ValidationError as exc:
                raise RenderFailure(
                    f"Statistics do not match the {report_type.value} schema",
                    original_error=exc,
                ) from exc
        if not isinstance(snapshot, snapshot_model(report_type)):
            raise RenderFailure(
                f"Expected {report_type.value} statistics, got {type(snapshot).__name__}"
            )
        return snapshot

    # ---- shared pieces ----

    def _header(self, report_type: ReportType, snapshot: StatisticsSnapshot) -> List[str]:
        lines = [f"# {TITLES[report_type]}", "", f"- Report date: **{snapshot.date}**"]
        generated = self._display_time(snapshot.timestamp)
        if generated:
            lines.append(f"- Generated: {generated}")
        if snapshot.errors:
            lines.append(
                f"- Degraded sources: **{len(snapshot.errors)}** (marked {UNAVAILABLE})"
            )
        lines.append("")
        return lines

    def _display_time(self, timestamp: str) -> str:
        if not timestamp:
            return ""
        try:
            moment = datetime.fromisoformat(timestamp)
        except ValueError:
            return timestamp
        zone = resolve_timezone(self.config.report_display_timezone)
        return moment.astimezone(zone).strftime("%Y-%m-%d %H:%M:%S %Z")

    def _unavailable(self, snapshot: StatisticsSnapshot, row: Row) -> bool:
        return any(snapshot.failed(group) for group in (row.depends or (row.path,)))

    def _table(
        self,
        snapshot: StatisticsSnapshot,
        rows: Sequence[Row],
        leaves: Dict[str, float],
        deltas: Dict[str, Delta],
    ) -> List[str]:
        lines = [
            "| Metric | Value | Share | Change |",
            "| --- | ---: | ---: | --- |",
        ]
        for row in rows:
            if self._unavailable(snapshot, row):
                lines.append(f"| {row.label} | {UNAVAILABLE} | - | - |")
                continue
            value = leaves.get(row.path, 0)
            shown = f"{value:.2f}%" if row.rate else format_number(value)
            share = "-"
            if row.share_of:
                share = f"{percentage(value, leaves.get(row.share_of, 0)):.2f}%"
            change = format_delta(deltas.get(row.path), rate=row.rate)
            lines.append(f"| {row.label} | {shown} | {share} | {change} |")
        lines.append("")
        return lines

    def _section(
        self,
        title: str,
        snapshot: StatisticsSnapshot,
        rows: Sequence[Row],
        leaves: Dict[str, float],
        deltas: Dict[str, Delta],
    ) -> List[str]:
        return [f"## {title}", ""] + self._table(snapshot, rows, leaves, deltas)

    # ---- thing statistics ----

    def _things(
        self, snapshot: ThingStatistics, leaves: Dict[str, float], deltas: Dict[str, Delta]
    ) -> List[str]:
        rows = [
            Row("Account things", "accountThingCount", "totalThingCount"),
            Row(
                "Device things",
                "deviceThingCount",
                "totalThingCount",
                depends=("deviceTableCount", "gatewayThingCount"),
            ),
            Row(
                "Total things",
                "totalThingCount",
                depends=("accountThingCount", "deviceTableCount", "gatewayThingCount"),
            ),
        ]
        details = [
            Row("Device table", "deviceTableCount", "deviceThingCount"),
            Row("Gateway table", "gatewayThingCount", "deviceThingCount"),
        ]
        return self._section("Overview", snapshot, rows, leaves, deltas) + self._section(
            "Device breakdown", snapshot, details, leaves, deltas
        )

    # ---- message statistics ----

    def _traffic_rows(self, group: str, extra: Sequence[Row] = ()) -> List[Row]:
        return [
            Row("Success", f"{group}.success", f"{group}.total"),
            Row("Client errors", f"{group}.clientError", f"{group}.total"),
            Row("Server errors", f"{group}.serverError", f"{group}.total"),
            *extra,
            Row("Total", f"{group}.total", depends=(group,)),
            Row("Success rate", f"{group}.successRate", depends=(group,), rate=True),
        ]

    def _messages(
        self, snapshot: MessageStatistics, leaves: Dict[str, float], deltas: Dict[str, Delta]
    ) -> List[str]:
        overview = [
            Row("Total messages", "totalMessages", depends=("inbound", "outbound")),
            Row("Inbound", "inbound.total", "totalMessages", depends=("inbound",)),
            Row("Outbound", "outbound.total", "totalMessages", depends=("outbound",)),
            Row("Successful connections", "connections.success"),
            Row("Subscriptions", "subscriptions.subscribe"),
        ]
        lines = self._section("Overview", snapshot, overview, leaves, deltas)
        lines += self._section(
            "Inbound publish", snapshot, self._traffic_rows("inbound"), leaves, deltas
        )
        lines += self._section(
            "Outbound publish", snapshot, self._traffic_rows("outbound"), leaves, deltas
        )
        lines += self._section(
            "Connections",
            snapshot,
            self._traffic_rows(
                "connections", [Row("Disconnects", "connections.disconnects")]
            ),
            leaves,
            deltas,
        )
        lines += self._section(
            "Subscriptions",
            snapshot,
            [
                Row("Subscribe", "subscriptions.subscribe"),
                Row("Unsubscribe", "subscriptions.unsubscribe"),
            ],
            leaves,
            deltas,
        )
        return lines

    def _trend(self, history: Sequence[StatisticsSnapshot]) -> List[str]:
        lines = [
            f"## {len(history)}-day trend",
            "",
            "| Date | Inbound | Outbound | Total | Inbound success |",
            "| --- | ---: | ---: | ---: | ---: |",
        ]
        for day in history:
            if not isinstance(day, MessageStatistics):
                raise RenderFailure(
                    f"Trend history holds {type(day).__name__}, expected MessageStatistics"
                )
            lines.append(
                f"| {day.date} | {format_number(day.inbound.total)} | "
                f"{format_number(day.outbound.total)} | {format_number(day.total_messages)} | "
                f"{day.inbound.success_rate:.2f}% |"
            )
        lines.append("")
        return lines

    # ---- error statistics ----

    def _error_rows(self, group: str, throttled: bool) -> List[Row]:
        rows = [
            Row("Auth errors", f"{group}.authError", f"{group}.total"),
            Row("Client errors", f"{group}.clientError", f"{group}.total"),
            Row("Server errors", f"{group}.serverError", f"{group}.total"),
        ]
        if throttled:
            rows.append(Row("Throttled", f"{group}.throttle", f"{group}.total"))
        rows.append(Row("Total", f"{group}.total", depends=(group,)))
        return rows

    def _errors(
        self, snapshot: ErrorStatistics, leaves: Dict[str, float], deltas: Dict[str, Delta]
    ) -> List[str]:
        severity = classify_severity(
            snapshot.total_errors, self.config.error_severity_thresholds
        )
        lines = [f"**Severity: {severity.upper()}**", ""]
        overview = [
            Row(
                "Total errors",
                "totalErrors",
                depends=("connectionErrors", "publishInErrors", "publishOutErrors", "subscribeErrors"),
            ),
            Row("Connection", "connectionErrors.total", "totalErrors", depends=("connectionErrors",)),
            Row("Publish in", "publishInErrors.total", "totalErrors", depends=("publishInErrors",)),
            Row("Publish out", "publishOutErrors.total", "totalErrors", depends=("publishOutErrors",)),
            Row("Subscribe", "subscribeErrors.total", "totalErrors", depends=("subscribeErrors",)),
        ]
        lines += self._section("Overview", snapshot, overview, leaves, deltas)
        for title, group, throttled in (
            ("Connection errors", "connectionErrors", True),
            ("Publish in errors", "publishInErrors", False),
            ("Publish out errors", "publishOutErrors", False),
            ("Subscribe errors", "subscribeErrors", True),
        ):
            lines += self._section(
                title, snapshot, self._error_rows(group, throttled), leaves, deltas
            )
        lines += ["## Duplicate client IDs", ""]
        lines += self._contributors(
            "Applications", snapshot.duplicate_clients.applications,
            deltas.get("duplicateClients.applications.totalEvents"),
        )
        lines += self._contributors(
            "Devices", snapshot.duplicate_clients.devices,
            deltas.get("duplicateClients.devices.totalEvents"),
        )
        return lines

    def _contributors(
        self, label: str, report: ContributorReport, delta: Optional[Delta]
    ) -> List[str]:
        if report.error:
            return [f"**{label}:** {UNAVAILABLE} ({report.error})", ""]
        lines = [
            f"**{label}:** {format_number(report.total_events)} events from "
            f"{format_number(report.unique_clients)} clients, {format_delta(delta)}",
        ]
        top = report.duplicate_clients[: self.config.display_top_n]
        if top:
            lines.append("")
            lines.append(f"Top {len(top)}:")
        width = self.config.display_id_width
        for record in top:
            lines.append(
                f"{record.rank}. `{elide(record.client_id, width)}` ({record.source_ip}): "
                f"**{format_number(record.duplicate_count)}** ({record.percentage:.2f}%)"
            )
        lines.append("")
        return lines

    # ---- footer ----

    def _footer(
        self,
        report_type: ReportType,
        snapshot: StatisticsSnapshot,
        comparison: Optional[Comparison],
    ) -> List[str]:
        config = self.config
        if report_type is ReportType.THINGS:
            sources = [f"Redshift {config.redshift_cluster}/{config.redshift_database}"]
        else:
            sources = [f"CloudWatch {config.cloudwatch_namespace}"]
        if report_type is ReportType.ERRORS:
            sources.append(
                "Contributor Insights "
                f"{config.duplicate_app_rule}, {config.duplicate_device_rule}"
            )
        lines = ["---", f"Sources: {'; '.join(sources)}"]
        if comparison is not None:
            lines.append(
                f"Compared with {comparison.previous.date} ({comparison.basis})"
            )
        return lines
