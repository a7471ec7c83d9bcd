from .environments import Environment
from .report_keys import ReportType, SnapshotKeys

__all__ = ["Environment", "ReportType", "SnapshotKeys"]
