"""HTTP error type and the default error renderer."""

from http import HTTPStatus
from typing import Optional, Protocol, runtime_checkable

from starlette.responses import JSONResponse
from starlette.types import Receive, Scope, Send


def status_phrase(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return f"HTTP {status_code}"


@runtime_checkable
class SupportsInternalCause(Protocol):
    """Errors that can expose a wrapped internal cause."""

    def internal_cause(self) -> Optional[BaseException]:
        ...


class HTTPError(Exception):
    """
    Error raised by handlers that should be rendered with a given status.

    `message` is what the client sees. `internal` is an optional cause that
    is only ever logged, never rendered.

    Usage:
        raise HTTPError(502, "Upstream unavailable", internal=exc)
    """

    def __init__(self, status_code: int, message: Optional[str] = None,
                 internal: Optional[BaseException] = None):
        self.status_code = status_code
        self.message = message or status_phrase(status_code)
        self.internal = internal
        super().__init__(self.message)

    def internal_cause(self) -> Optional[BaseException]:
        return self.internal

    def __str__(self) -> str:
        if self.internal is not None:
            return f"code={self.status_code}, message={self.message}, internal={self.internal}"
        return f"code={self.status_code}, message={self.message}"


def internal_cause(err: BaseException) -> Optional[BaseException]:
    """Return the wrapped internal cause of `err`, if it exposes one."""
    if isinstance(err, SupportsInternalCause):
        return err.internal_cause()
    return None


def error_response(err: BaseException) -> JSONResponse:
    """Build the client-facing response for an unhandled error."""
    status_code = getattr(err, "status_code", None)
    if isinstance(err, HTTPError):
        return JSONResponse({"detail": err.message}, status_code=err.status_code)
    if isinstance(status_code, int) and 400 <= status_code < 600:
        detail = getattr(err, "detail", None) or status_phrase(status_code)
        return JSONResponse({"detail": detail}, status_code=status_code)
    return JSONResponse(
        {"detail": HTTPStatus.INTERNAL_SERVER_ERROR.phrase},
        status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
    )


async def render_error(scope: Scope, receive: Receive, send: Send,
                       err: BaseException, response_started: bool) -> None:
    """
    Write an error response for `err` unless one has already started.

    Once the response has started its status and headers are on the wire,
    so there is nothing left to render.
    """
    if response_started:
        return
    response = error_response(err)
    await response(scope, receive, send)
