"""Reporting service logger shim.

Delegates to the shared JSON logging setup so every module can simply call
``get_logger(__name__)``.
"""

from __future__ import annotations

import logging

from shared.logging.json import configure_logging as _shared_configure_logging

from .config import settings

_configured = False


def configure_logging(force: bool = False) -> logging.Logger:
    global _configured
    if _configured and not force:
        return logging.getLogger()
    root = _shared_configure_logging(
        service=settings.otel_service_name,
        level=settings.app_log_level,
        environment=settings.app_environment,
        redaction_patterns=settings.app_log_redaction_patterns,
    )
    _configured = True
    return root


def get_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    logger.propagate = True
    return logger
