from __future__ import annotations

import json
import logging
import time
import uuid
from contextvars import ContextVar
from typing import Any, Dict, Optional

import os
from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware


_APP_LOGGERS = ("app", "app.access", "app.transcript", "app.llm", "app.tasks", "app.bus")

# Set per HTTP request; background work started by the request inherits it
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

# Extra attributes copied into the JSON line when a log call passes them
_CONTEXT_FIELDS = ("request_id", "utterance_id", "event", "speaker", "status")


def current_request_id() -> Optional[str]:
    return request_id_var.get()


class RequestContextFilter(logging.Filter):
    """Stamp every record with the id of the request that produced it."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = request_id_var.get()
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        data: Dict[str, Any] = {
            "level": record.levelname,
            "ts": int(time.time() * 1000),
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _CONTEXT_FIELDS:
            val = getattr(record, key, None)
            if val is not None:
                data[key] = val
        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(data, ensure_ascii=False, default=str)


def _resolve_level(default: int = logging.INFO) -> int:
    env_level = os.getenv("WORKER_LOG_LEVEL")
    if not env_level:
        return default
    env_level = env_level.strip()
    if env_level.isdigit():
        return int(env_level)
    lvl = logging.getLevelName(env_level.upper())
    if isinstance(lvl, str):
        return default
    return int(lvl)


def setup_logging(level: int | None = None) -> None:
    resolved_level = level if level is not None else _resolve_level()
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    handler.addFilter(RequestContextFilter())
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(resolved_level)
    for name in _APP_LOGGERS:
        logging.getLogger(name).setLevel(resolved_level)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assign a request id, expose it as ``X-Request-ID`` and log the access line.

    An incoming ``X-Request-ID`` (e.g. from the meeting bot's webhook
    delivery) is reused so retries can be correlated.
    """

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        incoming = request.headers.get("x-request-id", "").strip()
        request_id = incoming[:64] if incoming else uuid.uuid4().hex[:12]
        request.state.request_id = request_id
        token = request_id_var.set(request_id)
        start = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        dur_ms = int((time.perf_counter() - start) * 1000)
        response.headers["X-Request-ID"] = request_id
        logging.getLogger("app.access").info(
            "%s %s -> %s (%sms)",
            request.method,
            request.url.path,
            response.status_code,
            dur_ms,
            extra={"request_id": request_id, "status": response.status_code},
        )
        return response


def install_app_logging(app: FastAPI) -> None:
    app.add_middleware(RequestContextMiddleware)
