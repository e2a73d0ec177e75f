"""Serverless gateway entry points.

Gateways deliver the request as an event dict (``httpMethod``, ``headers``,
``body``, ``isBase64Encoded``) and expect ``{statusCode, headers, body}``
back. Semantics match the FastAPI routes in ``portal.uploads.routes`` and
``portal.roles.routes``.
"""
from __future__ import annotations

import asyncio
import base64
import binascii
import json
import logging
from typing import Any, Dict, Optional

from portal.common.cors import CORS_HEADERS
from portal.common.errors import PortalError, ValidationError, error_body
from portal.roles.service import bearer_token, get_role_service, parse_payload
from portal.uploads.models import KeyClass
from portal.uploads.service import build_request, get_upload_service

logger = logging.getLogger(__name__)


def _response(status_code: int, body: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    out: Dict[str, Any] = {"statusCode": status_code, "headers": dict(CORS_HEADERS)}
    if body is not None:
        out["headers"]["Content-Type"] = "application/json"
        out["body"] = json.dumps(body)
    return out


def _lower_headers(event: Dict[str, Any]) -> Dict[str, str]:
    return {str(k).lower(): str(v) for k, v in (event.get("headers") or {}).items()}


def _body_bytes(event: Dict[str, Any]) -> bytes:
    body = event.get("body") or b""
    if isinstance(body, str):
        # base64 payloads are ASCII; raw text bodies are sent as UTF-8
        return body.encode("ascii" if event.get("isBase64Encoded") else "utf-8", errors="strict")
    return bytes(body)


def handle_event(event: Dict[str, Any], key_class: KeyClass = KeyClass.PRIVATE) -> Dict[str, Any]:
    """Run one upload invocation described by a gateway ``event``."""
    method = str(event.get("httpMethod") or "").upper()
    if method == "OPTIONS":
        return _response(204)
    if method != "POST":
        return _response(405, error_body("Method Not Allowed"))

    headers = _lower_headers(event)
    try:
        service = get_upload_service(key_class)
        upload = build_request(
            headers.get("content-type"),
            _body_bytes(event),
            base64_encoded=bool(event.get("isBase64Encoded")),
        )
        response = asyncio.run(service.handle(upload))
    except PortalError as exc:
        logger.error("Upload invocation failed: %s", exc.message)
        return _response(exc.status_code, error_body(exc.message))
    except UnicodeEncodeError as exc:
        return _response(500, error_body(f"Request body is not valid base64: {exc}"))
    return _response(response.status_code, response.to_body())


def upload_handler(event: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
    """Private resident uploads (``private_files/...`` keys)."""
    return handle_event(event, KeyClass.PRIVATE)


def public_upload_handler(event: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
    """Shared document uploads (``{folder}/{filename}`` keys)."""
    return handle_event(event, KeyClass.PUBLIC)


def manager_role_handler(event: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
    """Grant or revoke the manager claim; gateway twin of ``POST /roles/manager``."""
    method = str(event.get("httpMethod") or "").upper()
    if method == "OPTIONS":
        return _response(204)
    if method != "POST":
        return _response(405, error_body("Method Not Allowed"))

    headers = _lower_headers(event)
    try:
        token = bearer_token(headers.get("authorization"))
        service = get_role_service()
        raw = event.get("body") or ""
        if event.get("isBase64Encoded"):
            try:
                raw = base64.b64decode(raw, validate=True)
            except (binascii.Error, ValueError) as exc:
                raise ValidationError(f"Request body is not valid base64: {exc}") from exc
        result = service.set_manager_role(token, parse_payload(raw))
    except PortalError as exc:
        if exc.status_code >= 500:
            logger.error("Role invocation failed: %s", exc.message)
        return _response(exc.status_code, error_body(exc.message))
    return _response(200, result.model_dump())
