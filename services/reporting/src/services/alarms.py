"""Chat rendering of CloudWatch alarm notifications delivered through SNS.

Produces the same ``RenderedReport`` document the daily reports use, so a
single delivery collaborator can post both. A body that is not an alarm
payload is still rendered, as the raw message.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Mapping, Optional
from urllib.parse import quote

from dateutil import parser as date_parser
from pydantic import ValidationError

from src.core.config import Settings, settings
from src.core.logger import get_logger
from src.domain.models import AlarmNotification, RenderedReport, utc_timestamp
from src.utils.windows import resolve_timezone, today_in

logger = get_logger("alarms")

ALARM_TITLE = "⚠️ AWS IoT Core Alarm"
CONSOLE_URL = (
    "https://{region}.console.aws.amazon.com/cloudwatch/home"
    "?region={region}#alarmsV2:alarm/{name}?~(accountId~'{account}')"
)


def alarm_region(alarm: AlarmNotification, default: str) -> str:
    # The payload's Region is a display name ("US East (N. Virginia)"); the
    # ARN carries the code.
    parts = (alarm.alarm_arn or "").split(":")
    if len(parts) > 3 and parts[0] == "arn" and parts[3]:
        return parts[3]
    return default


def console_link(alarm: AlarmNotification, default_region: str) -> Optional[str]:
    if not alarm.account_id or not alarm.alarm_name:
        return None
    region = alarm_region(alarm, default_region)
    return CONSOLE_URL.format(
        region=region, name=quote(alarm.alarm_name, safe=""), account=alarm.account_id
    )


class AlarmRenderer:
    def __init__(self, config: Settings = settings):
        self.config = config

    def parse(self, message: str | Mapping[str, Any]) -> AlarmNotification:
        """Accept an SNS record, its ``Message`` string or the decoded alarm."""
        if isinstance(message, Mapping) and isinstance(message.get("Message"), str):
            message = message["Message"]
        if isinstance(message, (str, bytes)):
            message = json.loads(message)
        if not isinstance(message, Mapping):
            raise ValueError("alarm payload is not an object")
        return AlarmNotification.model_validate(message)

    def render(
        self, message: str | Mapping[str, Any], now: Optional[datetime] = None
    ) -> RenderedReport:
        try:
            alarm = self.parse(message)
        except (ValueError, ValidationError) as exc:
            logger.warning("alarm_unparseable", extra={"error": str(exc)})
            return self._raw(message, now)

        changed_at = alarm.state_change_time or utc_timestamp(now)
        lines = [
            f"## {ALARM_TITLE} Notification",
            "",
            f"**Alarm**: {alarm.alarm_name or 'Unknown alarm'}",
            "",
            f"**State**: {alarm.new_state or 'Unknown state'}",
            "",
            f"**Description**: {alarm.alarm_description or 'No description'}",
            "",
            f"**Reason**: {alarm.new_state_reason or 'No reason'}",
            "",
            f"**Changed at**: {changed_at}",
        ]
        link = console_link(alarm, self.config.aws_region)
        if link:
            lines += ["", f"[Open alarm in console]({link})"]

        logger.info(
            "alarm_rendered",
            extra={"alarm": alarm.alarm_name, "state": alarm.new_state},
        )
        return RenderedReport(
            date=self._local_date(changed_at, now),
            title=ALARM_TITLE,
            text="\n".join(lines) + "\n",
        )

    def _raw(self, message: Any, now: Optional[datetime]) -> RenderedReport:
        body = message.get("Message", message) if isinstance(message, Mapping) else message
        if isinstance(body, bytes):
            body = body.decode("utf-8", errors="replace")
        return RenderedReport(
            date=today_in(self.config.report_display_timezone, now).isoformat(),
            title=ALARM_TITLE,
            text=f"## AWS IoT Core Alarm Notification\n\n**Raw message**: {body}\n",
        )

    def _local_date(self, changed_at: str, now: Optional[datetime]) -> str:
        zone = resolve_timezone(self.config.report_display_timezone)
        try:
            moment = date_parser.isoparse(changed_at)
        except ValueError:
            return today_in(self.config.report_display_timezone, now).isoformat()
        if moment.tzinfo is None:
            return moment.date().isoformat()
        return moment.astimezone(zone).date().isoformat()
