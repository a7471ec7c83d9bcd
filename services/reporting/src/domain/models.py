"""Typed statistics snapshots, one schema per report type.

Stored JSON uses camelCase field names; absent fields load as zero so older
documents stay comparable.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from shared.constants import ReportType

UNKNOWN_SOURCE = "Unknown"


def percentage(part: float, total: float, digits: int = 2) -> float:
    """Share of ``total`` in percent; a zero denominator yields 0."""
    if not total:
        return 0.0
    return round(part / total * 100, digits)


class ReportModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


# ---- Contributor reports ----


class ContributorRecord(ReportModel):
    rank: int = Field(ge=1)
    client_id: str
    source_ip: str = UNKNOWN_SOURCE
    duplicate_count: int = 0
    percentage: float = 0.0


class ContributorReport(ReportModel):
    kind: str = Field("application", alias="type")
    total_events: int = 0
    unique_clients: int = 0
    duplicate_clients: List[ContributorRecord] = Field(default_factory=list)
    error: Optional[str] = None

    @model_validator(mode="after")
    def _failed_reports_are_empty(self) -> "ContributorReport":
        if self.error:
            self.total_events = 0
            self.unique_clients = 0
            self.duplicate_clients = []
        return self

    @classmethod
    def failed(cls, kind: str, error: str) -> "ContributorReport":
        return cls(type=kind, error=error)


# ---- Snapshot variants ----


class StatisticsSnapshot(ReportModel):
    """Common envelope of every stored daily document."""

    REPORT_TYPE: ClassVar[ReportType]

    report_type: ReportType
    date: str = Field(pattern=r"^\d{4}-\d{2}-\d{2}$")
    timestamp: str = ""
    errors: Dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _matches_variant(self) -> "StatisticsSnapshot":
        expected = getattr(type(self), "REPORT_TYPE", None)
        if expected is not None and self.report_type != expected:
            raise ValueError(
                f"{type(self).__name__} cannot hold a {self.report_type.value} document"
            )
        return self

    @classmethod
    def zero(cls, date_key: str) -> "StatisticsSnapshot":
        """Zero baseline: every numeric leaf 0, every report empty."""
        return cls(report_type=cls.REPORT_TYPE, date=date_key)

    def with_totals(self) -> "StatisticsSnapshot":
        """Return a copy whose derived figures are recomputed from leaves."""
        return self

    def failed(self, group: str) -> bool:
        """True when ``group`` or any leaf beneath it degraded."""
        return any(
            name == group or name.startswith(group + ".") for name in self.errors
        )

    def numeric_leaves(self) -> Dict[str, float]:
        """Flatten to dotted camelCase paths of numeric values.

        Lists (contributor rankings) are not leaves; booleans are not numbers.
        """
        doc = self.model_dump(
            by_alias=True,
            mode="json",
            exclude={"report_type", "date", "timestamp", "errors"},
        )
        out: Dict[str, float] = {}
        _flatten(doc, "", out)
        return out


def _flatten(node: Any, prefix: str, out: Dict[str, float]) -> None:
    if isinstance(node, dict):
        for key, value in node.items():
            _flatten(value, f"{prefix}.{key}" if prefix else key, out)
    elif isinstance(node, bool) or node is None or isinstance(node, (list, str)):
        return
    elif isinstance(node, (int, float)):
        out[prefix] = node


class ThingStatistics(StatisticsSnapshot):
    REPORT_TYPE: ClassVar[ReportType] = ReportType.THINGS

    report_type: ReportType = ReportType.THINGS
    account_thing_count: int = 0
    device_table_count: int = 0
    gateway_thing_count: int = 0
    device_thing_count: int = 0
    total_thing_count: int = 0

    def with_totals(self) -> "ThingStatistics":
        device = self.device_table_count + self.gateway_thing_count
        return self.model_copy(
            update={
                "device_thing_count": device,
                "total_thing_count": self.account_thing_count + device,
            }
        )


class TrafficCounts(ReportModel):
    success: int = 0
    client_error: int = 0
    server_error: int = 0
    total: int = 0
    success_rate: float = 0.0

    def with_totals(self):
        total = self.success + self.client_error + self.server_error
        return self.model_copy(
            update={"total": total, "success_rate": percentage(self.success, total)}
        )


class ConnectionCounts(TrafficCounts):
    disconnects: int = 0


class SubscriptionCounts(ReportModel):
    subscribe: int = 0
    unsubscribe: int = 0


class MessageStatistics(StatisticsSnapshot):
    REPORT_TYPE: ClassVar[ReportType] = ReportType.MESSAGES

    report_type: ReportType = ReportType.MESSAGES
    inbound: TrafficCounts = Field(default_factory=TrafficCounts)
    outbound: TrafficCounts = Field(default_factory=TrafficCounts)
    connections: ConnectionCounts = Field(default_factory=ConnectionCounts)
    subscriptions: SubscriptionCounts = Field(default_factory=SubscriptionCounts)
    total_messages: int = 0

    def with_totals(self) -> "MessageStatistics":
        inbound = self.inbound.with_totals()
        outbound = self.outbound.with_totals()
        return self.model_copy(
            update={
                "inbound": inbound,
                "outbound": outbound,
                "connections": self.connections.with_totals(),
                "total_messages": inbound.total + outbound.total,
            }
        )


class ErrorCounts(ReportModel):
    auth_error: int = 0
    client_error: int = 0
    server_error: int = 0
    total: int = 0

    def with_totals(self):
        total = sum(
            value
            for name, value in self
            if name != "total" and isinstance(value, int)
        )
        return self.model_copy(update={"total": total})


class ThrottledErrorCounts(ErrorCounts):
    throttle: int = 0


class DuplicateClients(ReportModel):
    applications: ContributorReport = Field(
        default_factory=lambda: ContributorReport(type="application")
    )
    devices: ContributorReport = Field(
        default_factory=lambda: ContributorReport(type="device")
    )


class ErrorStatistics(StatisticsSnapshot):
    REPORT_TYPE: ClassVar[ReportType] = ReportType.ERRORS

    report_type: ReportType = ReportType.ERRORS
    connection_errors: ThrottledErrorCounts = Field(default_factory=ThrottledErrorCounts)
    publish_in_errors: ErrorCounts = Field(default_factory=ErrorCounts)
    publish_out_errors: ErrorCounts = Field(default_factory=ErrorCounts)
    subscribe_errors: ThrottledErrorCounts = Field(default_factory=ThrottledErrorCounts)
    total_errors: int = 0
    duplicate_clients: DuplicateClients = Field(default_factory=DuplicateClients)

    CATEGORIES: ClassVar[tuple[str, ...]] = (
        "connection_errors",
        "publish_in_errors",
        "publish_out_errors",
        "subscribe_errors",
    )

    def with_totals(self) -> "ErrorStatistics":
        update = {name: getattr(self, name).with_totals() for name in self.CATEGORIES}
        update["total_errors"] = sum(category.total for category in update.values())
        return self.model_copy(update=update)


SNAPSHOT_MODELS: Dict[ReportType, Type[StatisticsSnapshot]] = {
    ReportType.THINGS: ThingStatistics,
    ReportType.MESSAGES: MessageStatistics,
    ReportType.ERRORS: ErrorStatistics,
}


def snapshot_model(report_type: ReportType) -> Type[StatisticsSnapshot]:
    return SNAPSHOT_MODELS[ReportType(report_type)]


def load_snapshot(report_type: ReportType, document: Dict[str, Any]) -> StatisticsSnapshot:
    """Validate a stored document as ``report_type``.

    Documents written before the type tag existed are accepted; a document
    tagged with a different type is rejected.
    """
    payload = dict(document)
    payload.setdefault("reportType", ReportType(report_type).value)
    return snapshot_model(report_type).model_validate(payload)


def utc_timestamp(now: Optional[datetime] = None) -> str:
    return (now or datetime.now(timezone.utc)).isoformat()


# ---- Comparison & rendering ----


class Delta(ReportModel):
    path: str
    today: float = 0
    yesterday: float = 0
    delta: float = 0
    delta_percent: Optional[float] = None

    @property
    def trend(self) -> str:
        if self.delta > 0:
            return "up"
        if self.delta < 0:
            return "down"
        return "flat"


class AlarmNotification(BaseModel):
    """The CloudWatch alarm state change carried in an SNS message body."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    alarm_name: Optional[str] = Field(None, alias="AlarmName")
    alarm_description: Optional[str] = Field(None, alias="AlarmDescription")
    alarm_arn: Optional[str] = Field(None, alias="AlarmArn")
    account_id: Optional[str] = Field(None, alias="AWSAccountId")
    region: Optional[str] = Field(None, alias="Region")
    new_state: Optional[str] = Field(None, alias="NewStateValue")
    new_state_reason: Optional[str] = Field(None, alias="NewStateReason")
    state_change_time: Optional[str] = Field(None, alias="StateChangeTime")


class RenderedReport(ReportModel):
    # None for documents that are not daily reports (alarm notifications)
    report_type: Optional[ReportType] = None
    date: str
    title: str
    text: str

    def as_message(self) -> Dict[str, Any]:
        """Chat-bot markdown payload handed to the delivery collaborator."""
        return {
            "msgtype": "markdown",
            "markdown": {"title": self.title, "text": self.text},
        }
