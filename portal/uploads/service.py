"""Upload orchestration: decode, build keys, write, aggregate."""
from __future__ import annotations

import asyncio
import base64
import binascii
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from portal.common.errors import DecodeError, ValidationError
from portal.config.runtime_config import DEFAULT_FOLDER, load_upload_config
from portal.storage.gcs_writer import GcsObjectWriter, ObjectWriter, failed_result
from portal.uploads.keys import build_key
from portal.uploads.models import (
    FileField,
    KeyClass,
    UploadRequest,
    UploadResponse,
    UploadResult,
    UploadState,
)
from portal.uploads.multipart import decode_request

logger = logging.getLogger(__name__)

OWNER_FIELD = "residentUid"
FOLDER_FIELD = "folderPath"


def build_request(content_type: Optional[str], body: bytes, base64_encoded: bool = False) -> UploadRequest:
    """Wrap a transport body, undoing gateway base64 encoding when flagged."""
    if base64_encoded:
        try:
            body = base64.b64decode(body, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise DecodeError(f"Request body is not valid base64: {exc}") from exc
    return UploadRequest(content_type_header=content_type or "", body=body)


@dataclass
class UploadJob:
    """Per-request bookkeeping; one job per HTTP invocation."""

    request: UploadRequest
    state: UploadState = UploadState.AWAITING_FIELDS
    history: List[UploadState] = field(default_factory=lambda: [UploadState.AWAITING_FIELDS])
    files: List[FileField] = field(default_factory=list)
    results: List[UploadResult] = field(default_factory=list)

    def advance(self, state: UploadState) -> None:
        logger.debug("upload job %s -> %s", self.state.value, state.value)
        self.state = state
        self.history.append(state)


class UploadService:
    """Sequences one multipart upload request against an object writer.

    Writes are deferred until the whole body has been decoded, so fields such
    as ``folderPath`` or ``residentUid`` may appear anywhere in the body,
    before or after the file parts.
    """

    def __init__(
        self,
        writer: ObjectWriter,
        key_class: KeyClass = KeyClass.PRIVATE,
        default_folder: str = DEFAULT_FOLDER,
        required_fields: Sequence[str] = (),
        public_read: bool = False,
    ) -> None:
        self.writer = writer
        self.key_class = key_class
        self.default_folder = default_folder
        self.required_fields = tuple(required_fields)
        # private_files/... objects are never made public-read
        self.make_public = public_read and key_class is KeyClass.PUBLIC

    def key_for(self, fields: Dict[str, str], file: FileField) -> str:
        return build_key(
            fields.get(OWNER_FIELD),
            fields.get(FOLDER_FIELD),
            file.original_filename,
            default_folder=self.default_folder,
            private=self.key_class is KeyClass.PRIVATE,
        )

    def _check_fields(self, job: UploadJob) -> None:
        missing = [name for name in self.required_fields if not job.request.fields.get(name)]
        if missing:
            raise ValidationError(f"Missing required field: {', '.join(missing)}")
        if not job.files:
            raise ValidationError("No file uploaded")

    def _write_one(self, key: str, file: FileField) -> UploadResult:
        try:
            return self.writer.write(key, file.stream, file.mime_type, make_public=self.make_public)
        except Exception as exc:
            return failed_result(key, exc)

    async def _write_all(self, job: UploadJob) -> List[UploadResult]:
        fields = job.request.fields
        writes = [
            asyncio.to_thread(self._write_one, self.key_for(fields, f), f)
            for f in job.files
        ]
        # join-all; gather keeps file-part order regardless of finish order
        return list(await asyncio.gather(*writes))

    def _aggregate(self, job: UploadJob) -> UploadResponse:
        failures = [r for r in job.results if not r.success]
        if failures and len(failures) == len(job.results):
            return UploadResponse(
                status_code=500,
                results=job.results,
                error=failures[0].error_detail or "Upload failed",
            )
        if failures:
            logger.warning("%d of %d files failed to upload", len(failures), len(job.results))
        return UploadResponse(status_code=200, results=job.results)

    async def run(self, job: UploadJob) -> UploadResponse:
        job.advance(UploadState.DECODING_FILES)
        job.files = decode_request(job.request)
        self._check_fields(job)

        job.advance(UploadState.WRITING)
        job.results = await self._write_all(job)

        job.advance(UploadState.AGGREGATING)
        response = self._aggregate(job)
        job.advance(UploadState.DONE)
        return response

    async def handle(self, request: UploadRequest) -> UploadResponse:
        return await self.run(UploadJob(request=request))


# Process-scoped storage handle, built lazily from validated config.
_default_writer: Optional[ObjectWriter] = None


def get_object_writer() -> ObjectWriter:
    global _default_writer
    if _default_writer is None:
        _default_writer = GcsObjectWriter.from_config(load_upload_config())
    return _default_writer


def set_object_writer(writer: Optional[ObjectWriter]) -> None:
    """Override the default writer (useful for tests)."""
    global _default_writer
    _default_writer = writer


def get_upload_service(key_class: KeyClass) -> UploadService:
    """Build a service for ``key_class``; raises ConfigError before any decode."""
    config = load_upload_config()
    return UploadService(
        get_object_writer(),
        key_class=key_class,
        default_folder=config.default_folder,
        required_fields=config.required_fields,
        public_read=config.public_read,
    )
