from starlette.datastructures import Headers
from starlette.types import ASGIApp, Receive, Scope, Send
from .context import REQUEST_ID_HEADER, generate_request_id


class RequestIdMiddleware:
    """
    ASGI Middleware that assigns every request a request_id.

    - Reuses an incoming X-Request-Id header when present
    - Otherwise generates one (see generate_request_id)
    - Stores it in scope["state"]["request_id"] for handlers
    - Adds it to the response as X-Request-Id

    Install it inside AccessLogMiddleware (add it first) so the access log
    sees the generated id on the response.
    """

    def __init__(self, app: ASGIApp, header_name: str = REQUEST_ID_HEADER):
        self.app = app
        self.header_name = header_name

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = Headers(scope=scope).get(self.header_name) or generate_request_id()

        if "state" not in scope:
            scope["state"] = {}
        scope["state"]["request_id"] = request_id

        async def send_with_headers(message):
            if message["type"] == "http.response.start":
                headers = list(message.get("headers", []))
                headers.append((self.header_name.lower().encode("latin-1"), request_id.encode("latin-1")))
                message["headers"] = headers
            await send(message)

        await self.app(scope, receive, send_with_headers)
