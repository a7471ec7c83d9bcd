"""Metric plans: which connector fills which snapshot leaf, per report type."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List

from shared.constants import ReportType
from src.connectors.base import SourceConnector
from src.connectors.contributors import ContributorReportConnector
from src.connectors.counters import DirectCounter, PaginatedCounter
from src.connectors.query import AsyncQueryConnector
from src.core.config import Settings, settings
from src.infrastructure.aws.clients import AwsClients


@dataclass(frozen=True)
class PlanEntry:
    path: str  # camelCase dotted path into the snapshot document
    connector: SourceConnector[Any]


def thing_plan(clients: AwsClients, config: Settings = settings) -> List[PlanEntry]:
    return [
        PlanEntry(
            path,
            AsyncQueryConnector(
                clients.redshift_data,
                name=path,
                sql=sql,
                cluster=config.redshift_cluster,
                database=config.redshift_database,
                db_user=config.redshift_db_user,
                poll_interval=config.query_poll_interval_seconds,
                max_attempts=config.query_max_attempts,
            ),
        )
        for path, sql in config.thing_queries.items()
    ]


def message_plan(clients: AwsClients, config: Settings = settings) -> List[PlanEntry]:
    return [
        PlanEntry(
            path,
            PaginatedCounter(
                clients.cloudwatch,
                metric,
                namespace=config.cloudwatch_namespace,
                period=config.cloudwatch_page_period_seconds,
                page_delay=config.cloudwatch_page_delay_seconds,
                max_pages=config.cloudwatch_max_pages,
            ),
        )
        for path, metric in config.message_metrics.items()
    ]


def error_plan(clients: AwsClients, config: Settings = settings) -> List[PlanEntry]:
    plan = [
        PlanEntry(
            path,
            DirectCounter(
                clients.cloudwatch,
                metric,
                namespace=config.cloudwatch_namespace,
                period=config.cloudwatch_daily_period_seconds,
            ),
        )
        for path, metric in config.error_metrics.items()
    ]
    for path, rule, kind in (
        ("duplicateClients.applications", config.duplicate_app_rule, "application"),
        ("duplicateClients.devices", config.duplicate_device_rule, "device"),
    ):
        plan.append(
            PlanEntry(
                path,
                ContributorReportConnector(
                    clients.cloudwatch,
                    rule,
                    kind,
                    top_n=config.contributor_top_n,
                    min_period=config.contributor_min_period_seconds,
                    max_period=config.contributor_max_period_seconds,
                ),
            )
        )
    return plan


PLAN_BUILDERS = {
    ReportType.THINGS: thing_plan,
    ReportType.MESSAGES: message_plan,
    ReportType.ERRORS: error_plan,
}


def build_plan(
    report_type: ReportType, clients: AwsClients, config: Settings = settings
) -> List[PlanEntry]:
    return PLAN_BUILDERS[ReportType(report_type)](clients, config)
