"""Error taxonomy and the JSON error envelope shared by every portal endpoint.

All failures leave the service as:
{
  "error": "human readable message"
}
optionally extended with endpoint-specific keys (e.g. per-file ``results``).
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from portal.common.cors import CORS_HEADERS

logger = logging.getLogger(__name__)


class PortalError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code: int = 500
    code: str = "portal.error"

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class DecodeError(PortalError):
    """Malformed multipart body; aborts the request before any write."""

    code = "upload.decode_error"


class ConfigError(PortalError):
    """Missing or invalid credentials/config detected at cold start."""

    code = "config.error"


class WriteError(PortalError):
    """Object store failure for a single file."""

    code = "upload.write_error"


class ValidationError(PortalError):
    status_code = 400
    code = "request.invalid"


class AuthError(PortalError):
    status_code = 401
    code = "auth.invalid"


class PermissionDenied(PortalError):
    status_code = 403
    code = "auth.permission_denied"


class NotFound(PortalError):
    status_code = 404
    code = "resource.not_found"


def error_body(message: str, **extra: Any) -> Dict[str, Any]:
    body: Dict[str, Any] = {"error": message}
    body.update(extra)
    return body


def error_response(
    status_code: int, message: str, headers: Optional[Dict[str, str]] = None, **extra: Any
) -> JSONResponse:
    return JSONResponse(
        content=error_body(message, **extra),
        status_code=status_code,
        headers={**CORS_HEADERS, **(headers or {})},
    )


# --- Exception handlers ---

async def _portal_error_handler(request: Request, exc: PortalError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return error_response(exc.status_code, exc.message)


async def _http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail
    if isinstance(detail, dict) and "error" in detail:
        return JSONResponse(content=detail, status_code=exc.status_code, headers=dict(CORS_HEADERS))
    return error_response(
        exc.status_code,
        str(detail) if detail else "HTTP exception",
        headers=getattr(exc, "headers", None),
    )


async def _validation_exception_handler(request: Request, exc: RequestValidationError):
    return error_response(400, "Validation failed", details=jsonable_encoder(exc.errors()))


async def _generic_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(500, "Internal server error")


def register_error_handlers(target_app: FastAPI) -> None:
    target_app.add_exception_handler(PortalError, _portal_error_handler)
    target_app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    target_app.add_exception_handler(RequestValidationError, _validation_exception_handler)
    target_app.add_exception_handler(Exception, _generic_exception_handler)
