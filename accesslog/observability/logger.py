import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional, Sequence

from .fields import Field, to_dict
from .severity import Severity


# Security: Keys that should never be logged
FORBIDDEN_KEYS = {
    'authorization', 'token', 'password', 'secret',
    'api_key', 'bearer', 'jwt', 'credential', 'auth'
}


class StructuredLogger:
    """
    Structured JSON logger emitting one line per call.

    Output layout:
    - timestamp, level, service, message
    - bound fields (see bind()) at the top level, errors as {"type", "message"}
    - per-call fields, data and keyword arguments inside a "data" object

    Usage:
        logger = get_logger("my_service")
        logger.info("Order created", fields.string("instrument", "NSE:RELIANCE"))
        logger.bind(fields.error(exc)).error("Order failed")
    """

    def __init__(self, service_name: str, bound: Sequence[Field] = (),
                 _logger: Optional[logging.Logger] = None):
        self.service_name = service_name
        self.bound = tuple(bound)

        if _logger is not None:
            self.logger = _logger
            return

        self.logger = logging.getLogger(service_name)
        if not self.logger.handlers:
            self.logger.setLevel(logging.DEBUG)
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(logging.Formatter('%(message)s'))
            self.logger.addHandler(handler)
            self.logger.propagate = False

    def bind(self, *fields: Field) -> "StructuredLogger":
        """Return a child logger that attaches `fields` to every call."""
        return StructuredLogger(
            self.service_name,
            self.bound + tuple(fields),
            _logger=self.logger,
        )

    def _sanitize(self, values: Dict[str, Any]) -> Dict[str, Any]:
        """Remove forbidden keys for security."""
        return {
            k: v for k, v in values.items()
            if str(k).lower() not in FORBIDDEN_KEYS
        }

    def _log(self, severity: Severity, message: str, fields: Iterable[Field],
             data: Optional[Dict[str, Any]] = None, **kwargs):
        """
        Build and emit a JSON log line.

        Priority inside "data" (later overrides earlier):
        1. Positional fields, in order
        2. Explicit `data` dict
        3. Keyword arguments
        """
        if not self.logger.isEnabledFor(severity):
            return

        log_entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            "level": logging.getLevelName(int(severity)),
            "service": self.service_name,
            "message": message
        }

        log_entry.update(self._sanitize(to_dict(self.bound, nested_errors=True)))

        payload = to_dict(fields)
        if data is not None:
            if isinstance(data, dict):
                payload.update(data)
            else:
                payload["value"] = data
        payload.update(kwargs)
        payload = self._sanitize(payload)
        if payload:
            log_entry["data"] = payload

        log_line = json.dumps(log_entry, default=str)
        self.logger.log(int(severity), log_line)

    def log(self, severity: Severity, message: str, *fields: Field, **kwargs):
        """Log at an explicit severity."""
        self._log(severity, message, fields, **kwargs)

    def debug(self, message: str, *fields: Field, **kwargs):
        self._log(Severity.DEBUG, message, fields, **kwargs)

    def info(self, message: str, *fields: Field, **kwargs):
        self._log(Severity.INFO, message, fields, **kwargs)

    def warning(self, message: str, *fields: Field, **kwargs):
        self._log(Severity.WARN, message, fields, **kwargs)

    def error(self, message: str, *fields: Field, **kwargs):
        self._log(Severity.ERROR, message, fields, **kwargs)

    def critical(self, message: str, *fields: Field, **kwargs):
        self._log(Severity.CRITICAL, message, fields, **kwargs)


def get_logger(service_name: str, level: Optional[str] = None) -> StructuredLogger:
    """Get a structured logger for the given service."""
    logger = StructuredLogger(service_name)
    if level:
        logger.logger.setLevel(level.upper())
    return logger
