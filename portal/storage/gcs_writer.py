"""Object writers that persist uploaded file streams.

Writers never raise for store failures: every outcome, good or bad, comes
back as an UploadResult so sibling writes in the same request are unaffected.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Optional, Protocol, Set
from urllib.parse import quote

from google.cloud import storage

from portal.common.errors import ConfigError, WriteError
from portal.config.runtime_config import UploadConfig
from portal.uploads.models import UploadResult

logger = logging.getLogger(__name__)

PUBLIC_URL_BASE = "https://storage.googleapis.com"


class ObjectWriter(Protocol):
    """Streams one file into durable storage at ``key``."""

    def write(
        self, key: str, stream: Iterable[bytes], mime_type: str, make_public: bool = False
    ) -> UploadResult: ...


def public_url(bucket_name: str, key: str) -> str:
    # keys may already hold %-escapes; the URL must decode back to the exact object name
    return f"{PUBLIC_URL_BASE}/{bucket_name}/{quote(key, safe='/')}"


def failed_result(key: str, exc: Exception) -> UploadResult:
    error = exc if isinstance(exc, WriteError) else WriteError(f"Upload to GCS failed: {exc}")
    logger.error("%s (key=%s)", error.message, key, exc_info=exc)
    return UploadResult(storage_key=key, success=False, error_detail=error.message)


class GcsObjectWriter:
    """Google Cloud Storage writer.

    The bucket handle is created once and shared by all requests in the
    process; each write opens its own resumable upload stream.
    """

    def __init__(self, bucket_name: str, client: Any = None) -> None:
        if not bucket_name:
            raise ConfigError("Missing GCS_BUCKET: storage bucket is not configured")
        self.bucket_name = bucket_name
        self._client = client
        self._bucket = None

    @classmethod
    def from_config(cls, config: UploadConfig) -> "GcsObjectWriter":
        try:
            client = storage.Client.from_service_account_info(config.credentials, project=config.project_id)
        except ValueError as exc:
            raise ConfigError(f"GOOGLE_CLOUD_CREDENTIALS rejected by google-auth: {exc}") from exc
        return cls(config.bucket, client=client)

    @property
    def bucket(self):
        if self._bucket is None:
            if self._client is None:
                self._client = storage.Client()
            self._bucket = self._client.bucket(self.bucket_name)
        return self._bucket

    def _stream_to_blob(self, key: str, stream: Iterable[bytes], mime_type: str, make_public: bool) -> int:
        blob = self.bucket.blob(key)
        written = 0
        # closing the writer finalises the upload; that is the durability ack
        with blob.open("wb", content_type=mime_type) as fh:
            for chunk in stream:
                fh.write(chunk)
                written += len(chunk)
        if make_public:
            blob.make_public()
        return written

    def write(
        self, key: str, stream: Iterable[bytes], mime_type: str, make_public: bool = False
    ) -> UploadResult:
        try:
            written = self._stream_to_blob(key, stream, mime_type, make_public)
        except Exception as exc:
            return failed_result(key, exc)
        url = public_url(self.bucket_name, key)
        logger.info("Stored %s (%d bytes)", url, written)
        return UploadResult(storage_key=key, public_url=url, success=True)


class InMemoryObjectWriter:
    """In-memory writer for dev/tests; records objects and content types."""

    def __init__(self, bucket_name: str = "test-bucket", fail_keys: Optional[Iterable[str]] = None) -> None:
        self.bucket_name = bucket_name
        self.objects: Dict[str, bytes] = {}
        self.content_types: Dict[str, str] = {}
        self.fail_keys = set(fail_keys or ())
        self.public_keys: Set[str] = set()

    def write(
        self, key: str, stream: Iterable[bytes], mime_type: str, make_public: bool = False
    ) -> UploadResult:
        if key in self.fail_keys:
            return failed_result(key, WriteError(f"Upload to GCS failed: simulated failure for {key}"))
        self.objects[key] = b"".join(stream)
        self.content_types[key] = mime_type
        if make_public:
            self.public_keys.add(key)
        return UploadResult(storage_key=key, public_url=public_url(self.bucket_name, key), success=True)
