"""Structured logging and request observability."""
from .access_log_middleware import (
    DEFAULT_CONFIG,
    AccessLogConfig,
    AccessLogMiddleware,
    default_skipper,
    skip_paths,
)
from .logger import StructuredLogger, get_logger
from .middleware import RequestIdMiddleware
from .severity import Severity, default_severity, status_message

__all__ = [
    "DEFAULT_CONFIG",
    "AccessLogConfig",
    "AccessLogMiddleware",
    "RequestIdMiddleware",
    "Severity",
    "StructuredLogger",
    "default_severity",
    "default_skipper",
    "get_logger",
    "skip_paths",
    "status_message",
]
