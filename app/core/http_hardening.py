from __future__ import annotations

import logging
import re
from time import perf_counter
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.errors import FileTooLarge
from app.services.file_validation import format_megabytes, max_file_bytes

REQUEST_ID_HEADER = "X-Request-ID"
UPLOAD_PATH = "/api/files/upload"
_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._-]{1,128}$")
_LOG = logging.getLogger("app.http")

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "X-Permitted-Cross-Domain-Policies": "none",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=(), payment=(), usb=()",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'; base-uri 'none'",
}


def _request_id_from_header(raw: str | None) -> str:
    value = str(raw or "").strip()
    if not value:
        return uuid4().hex
    if not _REQUEST_ID_RE.fullmatch(value):
        return uuid4().hex
    return value


def _declared_body_length(request: Request) -> int | None:
    raw = str(request.headers.get("content-length") or "").strip()
    if not raw.isdigit():
        return None
    return int(raw)


def max_upload_body_bytes() -> int:
    return max_file_bytes() + int(settings.UPLOAD_BODY_OVERHEAD_BYTES)


def _oversized_upload_response(request: Request) -> JSONResponse | None:
    if request.method != "POST" or request.url.path.rstrip("/") != UPLOAD_PATH:
        return None
    declared = _declared_body_length(request)
    if declared is None or declared <= max_upload_body_bytes():
        return None
    err = FileTooLarge(
        details={
            "maxSize": format_megabytes(max_file_bytes()),
            "receivedSize": format_megabytes(declared),
        }
    )
    return JSONResponse(status_code=err.status_code, content=err.to_body())


def install_http_hardening(app: FastAPI) -> None:
    @app.middleware("http")
    async def _http_hardening_middleware(request: Request, call_next):
        request_id = _request_id_from_header(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id
        started_at = perf_counter()

        # Oversized uploads are refused before the multipart body is buffered.
        response = _oversized_upload_response(request)
        if response is None:
            response = await call_next(request)

        for key, value in SECURITY_HEADERS.items():
            response.headers[key] = value
        response.headers["Cache-Control"] = "no-store"
        response.headers["Pragma"] = "no-cache"
        response.headers["Expires"] = "0"
        response.headers[REQUEST_ID_HEADER] = request_id

        duration_ms = (perf_counter() - started_at) * 1000.0
        _LOG.info(
            "%s %s status=%s duration_ms=%.2f request_id=%s",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            request_id,
        )
        return response
