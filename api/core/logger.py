"""
Logging setup.

Two independent streams:
- `users_api`: leveled, JSON-per-line entries in error.log / warn.log / info.log
  (each file receives its level and above), plus a console handler outside
  production.
- `users_api.http`: one access line per request in http.log, written by
  `AccessLogMiddleware`. It does not propagate to `users_api`.
"""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from .config import Settings

APP_LOGGER = "users_api"
HTTP_LOGGER = "users_api.http"

# Attributes every LogRecord has; anything else came in through `extra=`.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None)).keys()
) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                entry[key] = value
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _file_handler(path: Path, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def _reset(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def configure_logging(settings: Settings) -> logging.Logger:
    """
    Install handlers on the application and access loggers.

    Safe to call more than once; previously installed handlers are replaced.
    """
    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    app_logger = logging.getLogger(APP_LOGGER)
    _reset(app_logger)
    app_logger.setLevel(getattr(logging, settings.log_level, logging.INFO))
    app_logger.propagate = False

    formatter = JsonFormatter()
    app_logger.addHandler(_file_handler(log_dir / "error.log", logging.ERROR, formatter))
    app_logger.addHandler(_file_handler(log_dir / "warn.log", logging.WARNING, formatter))
    app_logger.addHandler(_file_handler(log_dir / "info.log", logging.INFO, formatter))

    if not settings.is_production:
        console = logging.StreamHandler()
        console.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
        app_logger.addHandler(console)

    http_logger = logging.getLogger(HTTP_LOGGER)
    _reset(http_logger)
    http_logger.setLevel(logging.INFO)
    http_logger.propagate = False
    http_logger.addHandler(_file_handler(log_dir / "http.log", logging.INFO, logging.Formatter("%(message)s")))

    return app_logger


class AccessLogMiddleware(BaseHTTPMiddleware):
    """One line per request: client, request line, status, latency, user agent."""

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            elapsed_ms = (time.perf_counter() - started) * 1000
            target = request.url.path
            if request.url.query:
                target = f"{target}?{request.url.query}"
            client = request.client.host if request.client else "-"
            http_version = request.scope.get("http_version", "1.1")
            user_agent = request.headers.get("user-agent", "-")
            logging.getLogger(HTTP_LOGGER).info(
                f'{client} "{request.method} {target} HTTP/{http_version}" '
                f'{status_code} {elapsed_ms:.1f}ms "{user_agent}"'
            )
