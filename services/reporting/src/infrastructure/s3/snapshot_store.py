"""S3-backed daily snapshot store.

Layout: ``{prefix}{YYYY}/{MM}/{report-type}-{YYYY-MM-DD}.json``, one object
per report type per day. A put replaces the whole object, so rerunning a day
simply overwrites it.
"""

from __future__ import annotations

import asyncio
import json
from datetime import date, timedelta
from typing import Any, List, Optional

from botocore.exceptions import BotoCoreError, ClientError
from pydantic import ValidationError

from shared.constants import ReportType, SnapshotKeys
from shared.utils.retry import retry_async
from src.core.config import settings
from src.core.errors import PersistenceFailure, SnapshotUnreadable
from src.core.logger import get_logger
from src.core.metrics import SNAPSHOT_READ_FALLBACKS, SNAPSHOT_WRITE_FAILURES
from src.domain.models import StatisticsSnapshot, load_snapshot, snapshot_model
from src.infrastructure.aws.clients import call_aws

logger = get_logger("snapshot_store")

MISSING_CODES = {"NoSuchKey", "404", "NotFound"}


def _is_missing(exc: ClientError) -> bool:
    return exc.response.get("Error", {}).get("Code") in MISSING_CODES


class SnapshotStore:
    def __init__(
        self,
        client: Any,
        bucket: str = settings.snapshot_bucket,
        prefix: str = settings.snapshot_prefix,
        put_retries: int = settings.snapshot_put_retries,
        put_base_delay: float = settings.snapshot_put_base_delay_seconds,
    ):
        self.client = client
        self.bucket = bucket
        self.prefix = prefix
        self.put_retries = put_retries
        self.put_base_delay = put_base_delay

    def key_for(self, report_type: ReportType, day: date) -> str:
        return SnapshotKeys.with_prefix(self.prefix, ReportType(report_type), day)

    async def fetch(
        self, report_type: ReportType, day: date
    ) -> Optional[StatisticsSnapshot]:
        """Stored snapshot, or None when nothing was written for ``day``.

        Raises SnapshotUnreadable when the object exists but cannot be read
        or does not parse as ``report_type``.
        """
        key = self.key_for(report_type, day)
        try:
            response = await call_aws(
                self.client.get_object, Bucket=self.bucket, Key=key
            )
            body = await call_aws(response["Body"].read)
        except ClientError as exc:
            if _is_missing(exc):
                return None
            raise SnapshotUnreadable(
                f"Cannot read {key}", source_name=key, original_error=exc
            ) from exc
        except BotoCoreError as exc:
            raise SnapshotUnreadable(
                f"Cannot read {key}", source_name=key, original_error=exc
            ) from exc

        try:
            document = json.loads(body)
            if not isinstance(document, dict):
                raise ValueError("snapshot root is not an object")
            return load_snapshot(report_type, document)
        except (ValueError, ValidationError) as exc:
            # json.JSONDecodeError and pydantic's ValidationError are both ValueErrors
            raise SnapshotUnreadable(
                f"Malformed snapshot {key}", source_name=key, original_error=exc
            ) from exc

    async def get(self, report_type: ReportType, day: date) -> StatisticsSnapshot:
        """Stored snapshot, or the zero baseline when absent or unreadable."""
        try:
            snapshot = await self.fetch(report_type, day)
        except SnapshotUnreadable as exc:
            SNAPSHOT_READ_FALLBACKS.labels(reason="unreadable").inc()
            logger.warning("snapshot_unreadable", extra=exc.to_dict())
            snapshot = None
        else:
            if snapshot is None:
                SNAPSHOT_READ_FALLBACKS.labels(reason="absent").inc()
                logger.info(
                    "snapshot_absent",
                    extra={"report_type": ReportType(report_type).value, "date": day.isoformat()},
                )
        if snapshot is None:
            return snapshot_model(report_type).zero(day.isoformat())
        return snapshot

    async def put(self, report_type: ReportType, snapshot: StatisticsSnapshot) -> str:
        day = date.fromisoformat(snapshot.date)
        key = self.key_for(report_type, day)
        body = json.dumps(snapshot.to_document(), ensure_ascii=False, indent=2)

        async def _write() -> None:
            await call_aws(
                self.client.put_object,
                Bucket=self.bucket,
                Key=key,
                Body=body.encode("utf-8"),
                ContentType="application/json",
            )

        def _on_retry(attempt: int, exc: BaseException, sleep_for: float) -> None:
            logger.warning(
                "snapshot_put_retry",
                extra={"key": key, "attempt": attempt, "sleep": sleep_for, "error": str(exc)},
            )

        try:
            await retry_async(
                _write,
                retries=self.put_retries,
                base_delay=self.put_base_delay,
                retry_on=(ClientError, BotoCoreError),
                on_retry=_on_retry,
            )
        except (ClientError, BotoCoreError) as exc:
            SNAPSHOT_WRITE_FAILURES.inc()
            raise PersistenceFailure(
                f"Could not persist {key}", source_name=key, original_error=exc
            ) from exc

        logger.info("snapshot_stored", extra={"bucket": self.bucket, "key": key})
        return key

    async def history(
        self, report_type: ReportType, end_day: date, days: int
    ) -> List[StatisticsSnapshot]:
        """The ``days`` snapshots ending at ``end_day``, oldest first."""
        span = [end_day - timedelta(days=offset) for offset in range(days - 1, -1, -1)]
        return list(await asyncio.gather(*(self.get(report_type, day) for day in span)))
