"""
Logging and metrics.
"""

from .logger import setup_logging, get_logger
from .metrics import MetricsCollector, get_metrics, timed_operation

__all__ = [
    "setup_logging",
    "get_logger",
    "MetricsCollector",
    "get_metrics",
    "timed_operation",
]
