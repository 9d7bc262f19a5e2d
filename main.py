from fastapi import FastAPI, Request

from accesslog.http.errors import HTTPError
from accesslog.observability.access_log_middleware import AccessLogMiddleware
from accesslog.observability.logger import get_logger
from accesslog.observability.middleware import RequestIdMiddleware
from config.settings import access_log_config, get_settings


def create_app() -> FastAPI:
    settings = get_settings()
    logger = get_logger(settings.service_name, level=settings.log_level)

    app = FastAPI(
        title="Access Log Backend",
        description="Sample service instrumented with the structured access log middleware",
    )

    # Added first so it runs inside the access log and its response header is visible there
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        AccessLogMiddleware,
        logger=get_logger("access", level=settings.log_level),
        config=access_log_config(settings),
    )

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.get("/api/hello")
    def hello(request: Request):
        request.state.user_id = request.headers.get("X-User-Id")
        logger.info("Hello endpoint called", data={"endpoint": "/api/hello"})
        return {"message": "Hello"}

    @app.post("/api/echo")
    async def echo(request: Request):
        body = await request.body()
        return {"length": len(body)}

    @app.get("/api/fail")
    def fail():
        try:
            raise ConnectionError("upstream refused connection")
        except ConnectionError as exc:
            raise HTTPError(502, "Upstream unavailable", internal=exc)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    from config.logging_config import build_logging_config

    settings = get_settings()
    uvicorn.run(
        app,
        host=settings.app_host,
        port=settings.app_port,
        log_config=build_logging_config(settings.log_level),
    )
