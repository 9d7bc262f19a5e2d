from typing import Any, Optional
from dataclasses import dataclass
import time
import secrets
import re

from starlette.datastructures import Headers
from starlette.requests import Request
from starlette.types import Scope


REQUEST_ID_HEADER = "X-Request-Id"
REQUEST_ID_PATTERN = re.compile(r'^r\d{10}[0-9a-f]{12}$')


def generate_request_id() -> str:
    """
    Generate a new request_id.

    Format: r + Unix timestamp (seconds) + 12 hexadecimal characters
    Example: r1735228800f6e5d4c3b2a1

    Returns:
        str: A unique request_id
    """
    timestamp = int(time.time())
    random_hex = secrets.token_hex(6)
    return f"r{timestamp}{random_hex}"


def is_valid_request_id(request_id: str) -> bool:
    """
    Validate request_id format.

    Args:
        request_id: The request_id to validate

    Returns:
        bool: True if valid, False otherwise
    """
    return bool(REQUEST_ID_PATTERN.match(request_id))


def state_value(scope: Scope, key: Any) -> Any:
    """Look up `key` in the request-scoped state, None when absent."""
    state = scope.get("state") or {}
    try:
        return state.get(key)
    except TypeError:
        # unhashable key
        return None


@dataclass(frozen=True)
class AccessContext:
    """
    Snapshot of one request/response pair, taken after the handler ran.

    Passed to skippers so they can decide on anything observable about the
    exchange: path, headers, final status, the raised exception.

    Fields:
    - scope: ASGI scope of the request
    - status: final response status code
    - response_headers: headers sent with the response start message
    - bytes_out: response body bytes actually sent
    - error: exception raised by the wrapped app, if any
    """
    scope: Scope
    status: int
    response_headers: Headers
    bytes_out: int = 0
    error: Optional[BaseException] = None

    @property
    def request(self) -> Request:
        return Request(self.scope)

    @property
    def path(self) -> str:
        return self.scope.get("path", "/")

    def value(self, key: Any) -> Any:
        """Request-scoped context value for `key`."""
        return state_value(self.scope, key)
