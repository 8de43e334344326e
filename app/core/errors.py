from __future__ import annotations

import logging
from typing import Any

import httpx
from botocore.exceptions import BotoCoreError, ClientError
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

_LOG = logging.getLogger("app.errors")


class AppError(HTTPException):
    status_code = 500
    code = "INTERNAL_ERROR"
    message = "Internal server error"

    def __init__(
        self,
        message: str | None = None,
        *,
        details: dict[str, Any] | None = None,
        extra: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ):
        self.message = message or self.message
        self.details = details
        self.extra = extra or {}
        super().__init__(status_code=self.status_code, detail=self.message, headers=headers)

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        body.update(self.extra)
        return body


class InvalidInput(AppError):
    status_code = 400
    code = "INVALID_INPUT"
    message = "Invalid input"


class NoFile(InvalidInput):
    code = "NO_FILE"
    message = "No file uploaded"


class FileTooLarge(InvalidInput):
    code = "FILE_TOO_LARGE"
    message = "File too large"


class InvalidType(InvalidInput):
    code = "INVALID_FILE_TYPE"
    message = "Invalid file type"


class InvalidExtension(InvalidInput):
    code = "INVALID_FILE_EXTENSION"
    message = "File extension does not match content type"


class ContentMismatch(InvalidInput):
    code = "INVALID_FILE_CONTENT"
    message = "File content does not match its extension"


class MissingRequired(InvalidInput):
    code = "MISSING_REQUIRED_ANSWERS"
    message = "Missing required answers"

    def __init__(self, missing: list[str]):
        ids = list(missing)
        super().__init__(details={"missingQuestions": ids}, extra={"missingQuestions": ids})
        self.missing = ids


class Unauthenticated(AppError):
    status_code = 401
    code = "UNAUTHENTICATED"
    message = "Unauthorized"


class Forbidden(AppError):
    status_code = 403
    code = "FORBIDDEN"
    message = "Forbidden"


class NotFound(AppError):
    status_code = 404
    code = "NOT_FOUND"
    message = "Not found"


class Conflict(AppError):
    status_code = 409
    code = "CONFLICT"
    message = "Conflict"


class RateLimited(AppError):
    status_code = 429
    code = "RATE_LIMIT_EXCEEDED"
    message = "Too many requests"


class Upstream(AppError):
    status_code = 500
    code = "UPSTREAM_ERROR"
    message = "Upstream service failure"


class IdentityProviderUnavailable(Upstream):
    status_code = 502
    message = "Identity provider unavailable"


def _storage_error_code(exc: Exception) -> str | None:
    if isinstance(exc, ClientError):
        return str(exc.response.get("Error", {}).get("Code", "")) or None
    return None


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def _app_error_handler(request: Request, exc: AppError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_body(), headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def _validation_error_handler(request: Request, exc: RequestValidationError):
        errors = [
            {"loc": [str(part) for part in err.get("loc", ())], "msg": str(err.get("msg") or "")}
            for err in exc.errors()
        ]
        err = InvalidInput("Request validation failed", details={"errors": errors})
        return JSONResponse(status_code=err.status_code, content=err.to_body())

    async def _upstream_handler(request: Request, exc: Exception):
        _LOG.error(
            "upstream failure %s %s error=%s request_id=%s",
            request.method,
            request.url.path,
            type(exc).__name__,
            getattr(request.state, "request_id", "-"),
        )
        details = {"reason": type(exc).__name__}
        code = _storage_error_code(exc)
        if code:
            details["code"] = code
        err = Upstream(details=details)
        return JSONResponse(status_code=err.status_code, content=err.to_body())

    app.add_exception_handler(ClientError, _upstream_handler)
    app.add_exception_handler(BotoCoreError, _upstream_handler)
    app.add_exception_handler(SQLAlchemyError, _upstream_handler)
    app.add_exception_handler(httpx.HTTPError, _upstream_handler)
