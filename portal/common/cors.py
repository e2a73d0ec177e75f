"""Permissive CORS headers for browser-facing gateway routes."""
from __future__ import annotations

from fastapi import Response

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
}


def preflight_response() -> Response:
    return Response(status_code=204, headers=dict(CORS_HEADERS))
