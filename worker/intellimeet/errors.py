from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .logging import current_request_id


class ErrorResponse(BaseModel):
    ok: bool = False
    error: str
    request_id: Optional[str] = None


def _request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None) or current_request_id()


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        msg = err.get("msg", "invalid value")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts) or "invalid request"


def _error(request: Request, status_code: int, message: str) -> JSONResponse:
    body = ErrorResponse(error=message, request_id=_request_id(request))
    return JSONResponse(status_code=status_code, content=body.dict())


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(HTTPException)
    async def _handle_http_exception(request: Request, exc: HTTPException):  # type: ignore[unused-variable]
        return _error(request, exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def _handle_validation(request: Request, exc: RequestValidationError):  # type: ignore[unused-variable]
        return _error(request, 422, _validation_message(exc))

    @app.exception_handler(Exception)
    async def _handle_unexpected(request: Request, exc: Exception):  # type: ignore[unused-variable]
        logging.getLogger("app").error("unhandled error on %s", request.url.path, exc_info=exc)
        return _error(request, 500, "internal error")
