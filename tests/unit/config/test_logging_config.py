import json
import logging
import logging.config
import sys

from config.logging_config import JSONFormatter, LOGGING_CONFIG, build_logging_config


def test_json_formatter_outputs_json_line():
    record = logging.LogRecord(
        name="uvicorn.error", level=logging.INFO, pathname=__file__, lineno=1,
        msg="Started server process [%d]", args=(42,), exc_info=None,
    )

    payload = json.loads(JSONFormatter().format(record))

    assert payload["level"] == "INFO"
    assert payload["logger"] == "uvicorn.error"
    assert payload["message"] == "Started server process [42]"
    assert payload["timestamp"].endswith("Z")
    assert "exception" not in payload


def test_json_formatter_includes_exception():
    try:
        raise ValueError("bad")
    except ValueError:
        record = logging.LogRecord(
            name="uvicorn.error", level=logging.ERROR, pathname=__file__, lineno=1,
            msg="Exception in ASGI application", args=(), exc_info=sys.exc_info(),
        )

    payload = json.loads(JSONFormatter().format(record))

    assert "ValueError: bad" in payload["exception"]


def test_build_logging_config_uses_level_and_silences_uvicorn_access():
    config = build_logging_config("debug")

    assert config["loggers"]["uvicorn"]["level"] == "DEBUG"
    assert config["loggers"]["uvicorn.error"]["level"] == "DEBUG"
    assert config["loggers"]["uvicorn.access"]["handlers"] == []
    assert LOGGING_CONFIG["loggers"]["uvicorn"]["level"] == "INFO"


def test_build_logging_config_is_valid_dictconfig():
    logging.config.dictConfig(build_logging_config("warning"))

    assert logging.getLogger("uvicorn").level == logging.WARNING
