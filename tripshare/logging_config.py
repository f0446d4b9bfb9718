from __future__ import annotations

import json
import logging
import os
import re
import secrets
from datetime import UTC, datetime

from flask import g, has_request_context, request

from .utils.request import _get_request_ip

LOG_FORMAT = (os.environ.get("TRIPSHARE_LOG_FORMAT", "json") or "json").strip().lower()
LOG_LEVEL = (os.environ.get("TRIPSHARE_LOG_LEVEL", "INFO") or "INFO").strip().upper()
REQUEST_ID_HEADER = (
    os.environ.get("TRIPSHARE_REQUEST_ID_HEADER", "X-Request-ID") or "X-Request-ID"
).strip()
REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._-]{8,128}$")

# Structured fields callers may attach with `extra={...}`
EXTRA_FIELDS = ("trip_slug", "trip_id", "verdict", "user_id")


def generate_request_id(raw: str | None) -> str:
    candidate = (raw or "").strip()
    if candidate and REQUEST_ID_RE.fullmatch(candidate):
        return candidate
    return secrets.token_urlsafe(12)


class RequestContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            record.request_id = getattr(g, "request_id", None)
            record.remote_addr = _get_request_ip()
            record.method = request.method
            record.path = request.path
        else:
            record.request_id = None
            record.remote_addr = None
            record.method = None
            record.path = None
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in ("request_id", "remote_addr", "method", "path", *EXTRA_FIELDS):
            value = getattr(record, key, None)
            if value is not None:
                payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, separators=(",", ":"), ensure_ascii=True, default=str)


def configure_logging(app) -> None:
    root = logging.getLogger()
    if not root.handlers:
        root.addHandler(logging.StreamHandler())
    formatter = (
        JsonFormatter()
        if LOG_FORMAT == "json"
        else logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    )
    for handler in root.handlers:
        handler.setFormatter(formatter)
        if not any(isinstance(f, RequestContextFilter) for f in handler.filters):
            handler.addFilter(RequestContextFilter())
    root.setLevel(LOG_LEVEL)
    app.logger.handlers = root.handlers
    app.logger.setLevel(LOG_LEVEL)
    app.logger.propagate = False
