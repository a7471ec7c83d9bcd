from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import List, Optional, Sequence

from prometheus_client import start_http_server
from shared.constants import ReportType
from src.core.config import settings
from src.core.errors import ReportingError
from src.core.logger import configure_logging, get_logger
from src.domain.models import RenderedReport
from src.services.alarms import AlarmRenderer
from src.services.pipeline import ReportPipeline

logger = get_logger("app")

ALL_REPORTS = "all"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fleet-report", description="Generate daily IoT fleet reports."
    )
    parser.add_argument(
        "report",
        nargs="?",
        default=ALL_REPORTS,
        choices=[ALL_REPORTS] + [member.value for member in ReportType],
        help="report type to run (default: all)",
    )
    parser.add_argument(
        "--date",
        default=None,
        help="report day as YYYY-MM-DD (default: today in the report timezone)",
    )
    parser.add_argument(
        "--format",
        choices=("markdown", "message"),
        default="markdown",
        help="print the markdown text or the chat message payload",
    )
    parser.add_argument(
        "--alarm",
        metavar="PATH",
        default=None,
        help="render a CloudWatch alarm SNS message from PATH (- for stdin) instead of reports",
    )
    parser.add_argument(
        "--metrics-port",
        type=int,
        default=None,
        help="expose Prometheus metrics on this port while running",
    )
    return parser


def selected_reports(choice: str) -> List[ReportType]:
    if choice == ALL_REPORTS:
        return list(ReportType)
    return [ReportType(choice)]


async def _run(
    reports: Sequence[ReportType],
    day: Optional[str],
    pipeline: Optional[ReportPipeline] = None,
) -> List[RenderedReport]:
    pipeline = pipeline or ReportPipeline()
    rendered = []
    for report_type in reports:
        rendered.append(await pipeline.run_report(report_type, day))
    return rendered


def render_alarm_file(path: str, stdin=None) -> RenderedReport:
    if path == "-":
        payload = (stdin or sys.stdin).read()
    else:
        with open(path, encoding="utf-8") as handle:
            payload = handle.read()
    return AlarmRenderer(settings).render(payload)


def emit(reports: Sequence[RenderedReport], fmt: str, stream=None) -> None:
    stream = stream or sys.stdout
    for report in reports:
        if fmt == "message":
            stream.write(json.dumps(report.as_message(), ensure_ascii=False, indent=2))
            stream.write("\n")
        else:
            stream.write(report.text)
            stream.write("\n")


def main(argv: Optional[Sequence[str]] = None) -> int:  # pragma: no cover - small wrapper
    args = build_parser().parse_args(argv)
    configure_logging()
    logger.info(
        "reporting_started",
        extra={"report": args.report, "date": args.date, "environment": settings.app_environment},
    )
    if args.metrics_port:
        start_http_server(args.metrics_port)
        logger.info("metrics_listening", extra={"port": args.metrics_port})

    if args.alarm:
        try:
            alarm = render_alarm_file(args.alarm)
        except OSError as exc:
            logger.error("alarm_unreadable", extra={"path": args.alarm, "error": str(exc)})
            return 2
        emit([alarm], args.format)
        return 0

    try:
        reports = asyncio.run(_run(selected_reports(args.report), args.date))
    except KeyboardInterrupt:  # noqa: PIE786
        logger.info("keyboard_interrupt_shutdown")
        return 130
    except ReportingError as exc:
        logger.error("report_run_failed", extra=exc.to_dict())
        return 1
    except ValueError as exc:
        logger.error("invalid_arguments", extra={"error": str(exc)})
        return 2
    except Exception:  # noqa: BLE001
        logger.exception("fatal_error_main")
        return 1

    emit(reports, args.format)
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
