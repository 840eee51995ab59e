"""Shared utilities package."""

from l2a_ondemand.shared.logging import setup_logger, get_logger
from l2a_ondemand.shared.retry import RetryStrategy
from l2a_ondemand.shared.metrics import MetricsCollector
from l2a_ondemand.shared.dates import parse_timestamp, parse_duration, utc_now

__all__ = [
    "setup_logger",
    "get_logger",
    "RetryStrategy",
    "MetricsCollector",
    "parse_timestamp",
    "parse_duration",
    "utc_now",
]
