from __future__ import annotations

import asyncio
from typing import Optional

from fastapi import APIRouter, Header, Request
from fastapi.responses import JSONResponse

from portal.common.cors import CORS_HEADERS, preflight_response
from portal.roles.service import bearer_token, get_role_service, parse_payload

router = APIRouter(prefix="/roles", tags=["roles"])


@router.post("/manager")
async def set_manager_role(request: Request, authorization: Optional[str] = Header(default=None)):
    """Grant or revoke the manager claim on the user identified by ``email``."""
    token = bearer_token(authorization)
    service = get_role_service()
    payload = parse_payload(await request.body())
    # firebase-admin and Firestore calls block; run them on a worker thread
    result = await asyncio.to_thread(service.set_manager_role, token, payload)
    return JSONResponse(content=result.model_dump(), headers=dict(CORS_HEADERS))


@router.options("/manager")
def manager_preflight():
    return preflight_response()
