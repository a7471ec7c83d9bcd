"""Shared building blocks for the reporting services."""

from .config import BaseAwsConfig, BaseLoggingConfig, BaseServiceConfig
from .constants import Environment, ReportType, SnapshotKeys

__all__ = [
    "Environment",
    "ReportType",
    "SnapshotKeys",
    "BaseServiceConfig",
    "BaseLoggingConfig",
    "BaseAwsConfig",
]
