"""Submit/poll/fetch connector for asynchronous SQL engines (Redshift Data API)."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from src.core.config import settings
from src.core.errors import QueryFailed, QueryTimeout, SourceError, SourceUnavailable
from src.core.metrics import QUERY_POLLS
from src.infrastructure.aws.clients import call_aws
from src.utils.windows import DayWindow

from .base import SourceConnector


class QueryStatus(str, Enum):
    SUBMITTED = "SUBMITTED"
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    TIMED_OUT = "TIMED_OUT"

    @property
    def terminal(self) -> bool:
        return self in (QueryStatus.SUCCEEDED, QueryStatus.FAILED, QueryStatus.TIMED_OUT)

    @classmethod
    def from_backend(cls, raw: Optional[str]) -> "QueryStatus":
        """Map engine vocabularies (Redshift Data, Athena) onto our states."""
        status = BACKEND_STATUS.get((raw or "").upper())
        if status is None:
            raise SourceUnavailable(f"Unrecognised query status {raw!r}")
        return status


BACKEND_STATUS: Dict[str, QueryStatus] = {
    # Redshift Data API
    "SUBMITTED": QueryStatus.SUBMITTED,
    "PICKED": QueryStatus.SUBMITTED,
    "STARTED": QueryStatus.RUNNING,
    "FINISHED": QueryStatus.SUCCEEDED,
    "ABORTED": QueryStatus.FAILED,
    "FAILED": QueryStatus.FAILED,
    # Athena
    "QUEUED": QueryStatus.SUBMITTED,
    "RUNNING": QueryStatus.RUNNING,
    "SUCCEEDED": QueryStatus.SUCCEEDED,
    "CANCELLED": QueryStatus.FAILED,
}


@dataclass
class QueryExecution:
    """Lifecycle of one submitted statement."""

    query_id: str
    status: QueryStatus = QueryStatus.SUBMITTED
    attempts: int = 0
    reason: Optional[str] = None

    def advance(self, status: QueryStatus, reason: Optional[str] = None) -> None:
        if self.status.terminal:
            raise ValueError(f"Query {self.query_id} already {self.status.value}")
        self.status = status
        if reason:
            self.reason = reason

    def time_out(self) -> None:
        self.advance(QueryStatus.TIMED_OUT, f"no terminal state after {self.attempts} polls")


def typed_number(cell: Dict[str, Any]) -> float | int:
    """Read a numeric result cell by its declared type.

    String cells are refused rather than parsed so locale formatting can
    never leak into counts.
    """
    if cell.get("isNull"):
        return 0
    if "longValue" in cell:
        return int(cell["longValue"])
    if "doubleValue" in cell:
        return float(cell["doubleValue"])
    raise SourceUnavailable(f"Result cell carries no numeric type: {sorted(cell)}")


class AsyncQueryConnector(SourceConnector[int]):
    """Runs a scalar ``SELECT COUNT(*)`` style statement.

    Polls every ``poll_interval`` seconds, at most ``max_attempts`` times.
    FAILED maps to QueryFailed with the engine's reason, an exhausted budget
    to QueryTimeout. Rows are only fetched after SUCCEEDED.
    """

    kind = "async_query"

    def __init__(
        self,
        client: Any,
        name: str,
        sql: str,
        cluster: str = settings.redshift_cluster,
        database: str = settings.redshift_database,
        db_user: str = settings.redshift_db_user,
        poll_interval: float = settings.query_poll_interval_seconds,
        max_attempts: int = settings.query_max_attempts,
    ):
        super().__init__(name)
        self.client = client
        self.sql = sql
        self.cluster = cluster
        self.database = database
        self.db_user = db_user
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts

    async def submit(self, **params: Any) -> QueryExecution:
        request: Dict[str, Any] = {
            "ClusterIdentifier": self.cluster,
            "Database": self.database,
            "DbUser": self.db_user,
            "Sql": self.sql,
            "StatementName": self.name,
        }
        if params:
            request["Parameters"] = [
                {"name": key, "value": str(value)} for key, value in params.items()
            ]
        response = await call_aws(self.client.execute_statement, **request)
        execution = QueryExecution(query_id=response["Id"])
        self.logger.info(
            "query_submitted", extra={"query": self.name, "query_id": execution.query_id}
        )
        return execution

    async def cancel(self, execution: QueryExecution) -> None:
        """Best-effort cancel of a statement we stopped waiting for."""
        try:
            await call_aws(self.client.cancel_statement, Id=execution.query_id)
        except (ClientError, BotoCoreError) as exc:
            self.logger.warning(
                "query_cancel_failed",
                extra={"query": self.name, "query_id": execution.query_id, "error": str(exc)},
            )
        else:
            self.logger.info(
                "query_cancelled", extra={"query": self.name, "query_id": execution.query_id}
            )

    async def wait(self, execution: QueryExecution) -> QueryExecution:
        try:
            while execution.attempts < self.max_attempts:
                response = await call_aws(
                    self.client.describe_statement, Id=execution.query_id
                )
                execution.attempts += 1
                QUERY_POLLS.inc()
                status = QueryStatus.from_backend(response.get("Status"))
                if status is QueryStatus.FAILED:
                    execution.advance(status, response.get("Error") or "unknown failure")
                    raise QueryFailed(
                        f"Query {self.name} failed: {execution.reason}",
                        reason=execution.reason,
                        context={"query_id": execution.query_id},
                    )
                if status is QueryStatus.SUCCEEDED:
                    execution.advance(status)
                    return execution
                if status is not execution.status:
                    execution.advance(status)
                if execution.attempts < self.max_attempts:
                    await asyncio.sleep(self.poll_interval)
        except asyncio.CancelledError:
            await self.cancel(execution)
            raise

        execution.time_out()
        await self.cancel(execution)
        raise QueryTimeout(
            f"Query {self.name} timed out after {execution.attempts} polls",
            attempts=execution.attempts,
            context={"query_id": execution.query_id},
        )

    async def results(self, execution: QueryExecution) -> List[List[Dict[str, Any]]]:
        records: List[List[Dict[str, Any]]] = []
        token: Optional[str] = None
        while True:
            kwargs: Dict[str, Any] = {"Id": execution.query_id}
            if token:
                kwargs["NextToken"] = token
            response = await call_aws(self.client.get_statement_result, **kwargs)
            records.extend(response.get("Records") or [])
            token = response.get("NextToken")
            if not token:
                return records

    async def _fetch(self, window: DayWindow, **params: Any) -> int:
        execution = await self.submit(**params)
        await self.wait(execution)
        records = await self.results(execution)
        if not records or not records[0]:
            return 0
        value = typed_number(records[0][0])
        self.logger.info(
            "query_completed",
            extra={"query": self.name, "value": value, "polls": execution.attempts},
        )
        return int(value)

    def default(self, error: SourceError) -> int:
        return 0
