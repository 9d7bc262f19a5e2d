"""Access log middleware for structured JSON logging."""

import dataclasses
import re
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional, Sequence, Tuple

from starlette.datastructures import Headers
from starlette.requests import ClientDisconnect
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from accesslog.http.errors import internal_cause, render_error
from . import fields
from .context import REQUEST_ID_HEADER, AccessContext, state_value
from .fields import Field
from .logger import StructuredLogger, get_logger
from .severity import SeverityFunc, default_severity, status_message

access_logger = get_logger("access")

Skipper = Callable[[AccessContext], bool]

CONTENT_LENGTH_PATTERN = re.compile(r'^[+-]?\d+$')

BODY_READ_DISCONNECTED = "client disconnected before the request body was read"

# Names of the fields the middleware itself writes; context keys may not reuse them
RESERVED_FIELDS = frozenset({
    "time", "remote_ip", "host", "method", "uri", "user_agent", "status",
    "latency", "latency_human", "bytes_in", "bytes_out", "body",
    "error", "internal_error", "request_id",
})


def default_skipper(ctx: AccessContext) -> bool:
    """Never skip."""
    return False


def skip_paths(*paths: str) -> Skipper:
    """Skipper that matches exact request paths, e.g. skip_paths("/health")."""
    skipped = frozenset(paths)

    def skipper(ctx: AccessContext) -> bool:
        return ctx.path in skipped

    return skipper


@dataclass(frozen=True)
class AccessLogConfig:
    """
    Per-instance access log configuration.

    Fields:
    - skipper: when it returns True nothing is logged for the request
    - print_body: log the request body when its declared size is small enough
    - body_size_limit: body is read only when 0 < Content-Length < limit
    - context_keys: keys looked up in scope["state"] and logged, in order
    - severity: status -> Severity strategy, default_severity when None

    Context keys named like a fixed field (RESERVED_FIELDS, e.g. "status")
    are never logged, so they cannot replace it. Keys the logger treats as
    secrets (logger.FORBIDDEN_KEYS, e.g. "token", "auth") are dropped by
    StructuredLogger as well.
    """
    skipper: Skipper = default_skipper
    print_body: bool = True
    body_size_limit: int = 1024
    context_keys: Tuple[Any, ...] = ()
    severity: Optional[SeverityFunc] = None


DEFAULT_CONFIG = AccessLogConfig()


def parse_content_length(raw: Optional[str]) -> int:
    """Declared body size; 0 when the header is missing or not an integer."""
    if not raw or not CONTENT_LENGTH_PATTERN.match(raw):
        return 0
    return int(raw, 10)


def real_ip(scope: Scope, headers: Headers) -> str:
    """Client IP, preferring X-Forwarded-For then X-Real-Ip over the peer address."""
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real = headers.get("x-real-ip")
    if real:
        return real
    client = scope.get("client")
    if client:
        return client[0]
    return ""


def request_uri(scope: Scope) -> str:
    """Path and query string as sent by the client."""
    raw_path = scope.get("raw_path")
    if raw_path:
        uri = raw_path.decode("latin-1")
    else:
        uri = scope.get("root_path", "") + scope.get("path", "")
    query_string = scope.get("query_string", b"")
    if query_string:
        uri += "?" + query_string.decode("latin-1")
    return uri


def _fraction(value: int, unit: int) -> str:
    whole, frac = divmod(value, unit)
    if frac == 0:
        return str(whole)
    digits = len(str(unit)) - 1
    return f"{whole}.{frac:0{digits}d}".rstrip("0")


def format_latency(nanoseconds: int) -> str:
    """Format a duration like 1.5ms, 12.3µs, 2m3.5s."""
    if nanoseconds == 0:
        return "0s"
    sign = "-" if nanoseconds < 0 else ""
    ns = abs(nanoseconds)
    if ns < 1_000:
        return f"{sign}{ns}ns"
    if ns < 1_000_000:
        return f"{sign}{_fraction(ns, 1_000)}µs"
    if ns < 1_000_000_000:
        return f"{sign}{_fraction(ns, 1_000_000)}ms"

    hours, rest = divmod(ns, 3_600_000_000_000)
    minutes, rest = divmod(rest, 60_000_000_000)
    out = sign
    if hours:
        out += f"{hours}h"
    if hours or minutes:
        out += f"{minutes}m"
    return out + f"{_fraction(rest, 1_000_000_000)}s"


def extract_context_fields(scope: Scope, keys: Sequence[Any]) -> List[Field]:
    """
    Fields for the configured context keys.

    Missing values are skipped, and so are keys whose text collides with a
    field in RESERVED_FIELDS.
    """
    extracted = []
    for key in keys:
        name = str(key)
        if name in RESERVED_FIELDS:
            continue
        value = state_value(scope, key)
        if value is None:
            continue
        extracted.append(fields.any_value(name, value))
    return extracted


def error_fields(err: Optional[BaseException]) -> List[Field]:
    """error, plus internal_error when the error wraps an internal cause."""
    if err is None:
        return []
    result = [fields.error(err)]
    cause = internal_cause(err)
    if cause is not None:
        result.append(fields.named_error("internal_error", cause))
    return result


def response_request_id(request_headers: Headers, response_headers: Headers) -> List[Field]:
    """
    request_id field, only when the id was set on the response.

    An id that came in with the request is already known to the caller and
    is not repeated in the access log.
    """
    if request_headers.get(REQUEST_ID_HEADER):
        return []
    request_id = response_headers.get(REQUEST_ID_HEADER)
    if not request_id:
        return []
    return [fields.string("request_id", request_id)]


class _TrackedReceive:
    """
    Wraps receive() to remember whether the request body was drained.

    Servers stop delivering the body once the response is complete, so a
    body the app left unread is pulled in by drain() just before the final
    response message goes out, and handed back later by read_remaining().
    """

    def __init__(self, receive: Receive):
        self._receive = receive
        self.body_consumed = False
        self.disconnected = False
        self.buffered: Optional[bytes] = None
        self.read_error: Optional[ClientDisconnect] = None

    async def __call__(self) -> Message:
        message = await self._receive()
        if message["type"] == "http.request" and not message.get("more_body", False):
            self.body_consumed = True
        elif message["type"] == "http.disconnect":
            self.disconnected = True
        return message

    async def _read_rest(self) -> bytes:
        if self.disconnected:
            raise ClientDisconnect()

        chunks = []
        while not self.body_consumed:
            message = await self()
            if message["type"] == "http.disconnect":
                raise ClientDisconnect()
            chunks.append(message.get("body", b""))
        return b"".join(chunks)

    async def drain(self) -> None:
        """Buffer the part of the body the app did not read."""
        if self.body_consumed or self.buffered is not None or self.read_error is not None:
            return
        try:
            self.buffered = await self._read_rest()
        except ClientDisconnect as exc:
            self.read_error = exc

    async def read_remaining(self) -> bytes:
        """Body left unread by the app; empty if the app already read it."""
        if self.read_error is not None:
            raise self.read_error
        if self.buffered is not None:
            return self.buffered
        if self.body_consumed:
            return b""
        return await self._read_rest()


class AccessLogMiddleware:
    """
    ASGI Middleware that logs one structured record per HTTP request.

    Logs include:
    - time, remote_ip, host, method, uri, user_agent
    - status, latency (ns), latency_human
    - bytes_in (declared Content-Length), bytes_out (bytes sent)
    - body, for small requests when enabled
    - configured request-state values
    - error / internal_error when the app raised
    - request_id when it was only set on the response

    Severity comes from the status code (see default_severity), the
    message from status_message(). Exceptions raised by the wrapped app
    are rendered as error responses and not propagated, unless the
    request is skipped.
    """

    def __init__(self, app: ASGIApp, logger: Optional[StructuredLogger] = None,
                 config: AccessLogConfig = DEFAULT_CONFIG):
        self.app = app
        self.logger = logger or access_logger
        self.config = dataclasses.replace(config)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        start = time.perf_counter_ns()
        tracked_receive = _TrackedReceive(receive)
        status_code = 500  # Default to 500 if response never starts
        response_started = False
        response_headers = Headers(raw=[])
        bytes_out = 0
        capture_body = self._wants_body(Headers(scope=scope))

        async def send_with_tracking(message: Message) -> None:
            nonlocal status_code, response_started, response_headers, bytes_out
            if message["type"] == "http.response.start":
                response_started = True
                status_code = message["status"]
                response_headers = Headers(raw=list(message.get("headers", [])))
            elif message["type"] == "http.response.body":
                bytes_out += len(message.get("body", b""))
                if capture_body and not message.get("more_body", False):
                    await tracked_receive.drain()
            await send(message)

        err: Optional[BaseException] = None
        try:
            await self.app(scope, tracked_receive, send_with_tracking)
        except Exception as exc:
            err = exc

        if err is not None:
            await render_error(scope, tracked_receive, send_with_tracking, err, response_started)

        ctx = AccessContext(
            scope=scope,
            status=status_code,
            response_headers=response_headers,
            bytes_out=bytes_out,
            error=err,
        )
        if self.config.skipper(ctx):
            if err is not None:
                raise err
            return

        latency = time.perf_counter_ns() - start
        await self._log_access(ctx, tracked_receive, latency)

    def _wants_body(self, headers: Headers) -> bool:
        bytes_in = parse_content_length(headers.get("content-length"))
        return self.config.print_body and 0 < bytes_in < self.config.body_size_limit

    async def _log_access(self, ctx: AccessContext, tracked_receive: _TrackedReceive,
                          latency: int) -> None:
        scope = ctx.scope
        headers = Headers(scope=scope)

        record = [
            fields.string("time", datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')),
            fields.string("remote_ip", real_ip(scope, headers)),
            fields.string("host", headers.get("host", "")),
            fields.string("method", scope.get("method", "")),
            fields.string("uri", request_uri(scope)),
            fields.string("user_agent", headers.get("user-agent", "")),
            fields.integer("status", ctx.status),
            fields.duration("latency", latency),
            fields.string("latency_human", format_latency(latency)),
        ]

        bytes_in = parse_content_length(headers.get("content-length"))
        record.append(fields.integer("bytes_in", bytes_in))
        record.append(fields.integer("bytes_out", ctx.bytes_out))

        if self._wants_body(headers):
            try:
                body = await tracked_receive.read_remaining()
            except ClientDisconnect as exc:
                self.logger.warning(
                    "access log error reading request body",
                    fields.string("error", str(exc) or BODY_READ_DISCONNECTED),
                    fields.string("error_type", type(exc).__name__),
                )
            else:
                record.append(fields.string("body", body.decode("utf-8", errors="replace")))

        record.extend(extract_context_fields(scope, self.config.context_keys))
        record.extend(error_fields(ctx.error))
        record.extend(response_request_id(headers, ctx.response_headers))

        severity_func = self.config.severity or default_severity
        severity = severity_func(ctx.status)
        message = status_message(ctx.status)

        log = self.logger
        if ctx.status >= 500 and ctx.error is not None:
            log = log.bind(fields.error(ctx.error))
        log.log(severity, message, *record)
