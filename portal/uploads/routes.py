from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from portal.common.cors import CORS_HEADERS, preflight_response
from portal.uploads.models import KeyClass
from portal.uploads.service import build_request, get_upload_service

router = APIRouter(prefix="/uploads", tags=["uploads"])

BODY_ENCODING_HEADER = "x-body-encoding"


def _is_base64(request: Request) -> bool:
    return request.headers.get(BODY_ENCODING_HEADER, "").strip().lower() == "base64"


async def _handle_upload(request: Request, key_class: KeyClass) -> JSONResponse:
    # config is resolved before the body is read so a broken deployment never decodes
    service = get_upload_service(key_class)
    upload = build_request(
        request.headers.get("content-type"),
        await request.body(),
        base64_encoded=_is_base64(request),
    )
    response = await service.handle(upload)
    return JSONResponse(
        content=response.to_body(),
        status_code=response.status_code,
        headers=dict(CORS_HEADERS),
    )


@router.post("")
async def upload_public_files(request: Request):
    """Upload one or more files under ``{folderPath}/{filename}``."""
    return await _handle_upload(request, KeyClass.PUBLIC)


@router.post("/private")
async def upload_private_files(request: Request):
    """Upload resident files under ``private_files/{residentUid}/{folderPath}/{filename}``."""
    return await _handle_upload(request, KeyClass.PRIVATE)


@router.options("")
@router.options("/private")
def upload_preflight():
    return preflight_response()
