import logging
from enum import IntEnum
from typing import Callable


class Severity(IntEnum):
    """Log severities, aligned with the stdlib logging levels."""
    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARN = logging.WARNING
    ERROR = logging.ERROR
    CRITICAL = logging.CRITICAL


SeverityFunc = Callable[[int], Severity]


def default_severity(status: int) -> Severity:
    """
    Map an HTTP status code to a severity.

    - 5xx: ERROR
    - 4xx: WARN
    - everything else (1xx, 2xx, 3xx): INFO
    """
    if status >= 500:
        return Severity.ERROR
    if status >= 400:
        return Severity.WARN
    return Severity.INFO


def status_message(status: int) -> str:
    """Human readable message for a status code, independent of severity."""
    if status >= 500:
        return "Server error"
    if status >= 400:
        return "Client error"
    if status >= 300:
        return "Redirection"
    return "Success"
