"""
Logging setup: one stdout handler, JSON lines by default, every record
tagged with the id of the request that produced it.
"""
import logging
import sys

from pythonjsonlogger.json import JsonFormatter

from newsdesk.config import settings
from newsdesk.middleware import request_id_var

TEXT_FORMAT = "%(asctime)s %(levelname)s [%(request_id)s] %(name)s: %(message)s"
JSON_FORMAT = "%(asctime)s %(levelname)s %(name)s %(request_id)s %(message)s"


class RequestIdFilter(logging.Filter):
    """Attach the current request id (or ``-``) to every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get() or "-"
        return True


def setup_logging(level: str | None = None, json_logs: bool | None = None) -> None:
    """Configure the root logger and route uvicorn's loggers through it."""
    level = (level or settings.LOG_LEVEL).upper()
    json_logs = settings.LOG_JSON if json_logs is None else json_logs

    if json_logs:
        formatter: logging.Formatter = JsonFormatter(
            JSON_FORMAT, rename_fields={"levelname": "level", "asctime": "timestamp"}
        )
    else:
        formatter = logging.Formatter(TEXT_FORMAT)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.addFilter(RequestIdFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in ("uvicorn", "uvicorn.error"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers.clear()
        uvicorn_logger.propagate = True

    # Our middleware already writes one line per request.
    logging.getLogger("uvicorn.access").disabled = True
