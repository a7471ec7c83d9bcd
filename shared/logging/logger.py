"""Shared logger utility for all services.

Falls back to a minimal text configuration when a module logs before the
service entry point has called ``configure_logging``.
"""

from __future__ import annotations

import logging

_configured = False


def get_logger(name: str, auto_configure: bool = True) -> logging.Logger:
    """Get a logger, configuring a minimal root handler on first use.

    Args:
        name: Logger name (usually dotted component name)
        auto_configure: Whether to install the fallback configuration

    Returns:
        Logger instance
    """
    global _configured

    if auto_configure and not _configured:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )
        _configured = True

    logger = logging.getLogger(name)
    logger.propagate = True
    return logger


def is_configured() -> bool:
    return _configured


def mark_configured():
    """Called by shared.logging.json.configure_logging."""
    global _configured
    _configured = True
