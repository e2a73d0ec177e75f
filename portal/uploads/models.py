from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field


class UploadState(str, Enum):
    AWAITING_FIELDS = "awaiting_fields"
    DECODING_FILES = "decoding_files"
    WRITING = "writing"
    AGGREGATING = "aggregating"
    DONE = "done"


class KeyClass(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"


class FileStream:
    """Finite sequence of byte chunks that can be iterated exactly once."""

    def __init__(self, chunks: Sequence[bytes]) -> None:
        self._chunks: Optional[List[bytes]] = list(chunks)
        self.size = sum(len(c) for c in self._chunks)

    @property
    def consumed(self) -> bool:
        return self._chunks is None

    def __iter__(self) -> Iterator[bytes]:
        if self._chunks is None:
            raise RuntimeError("file stream already consumed")
        chunks, self._chunks = self._chunks, None
        return iter(chunks)


@dataclass
class FieldEvent:
    name: str
    value: str


@dataclass
class FilePartEvent:
    field_name: str
    filename: str
    mime_type: str
    stream: FileStream


MultipartEvent = Union[FieldEvent, FilePartEvent]


@dataclass
class FileField:
    field_name: str
    original_filename: str
    mime_type: str
    stream: FileStream


@dataclass
class UploadRequest:
    content_type_header: str
    body: bytes
    fields: Dict[str, str] = field(default_factory=dict)


class UploadResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    storage_key: str
    public_url: Optional[str] = None
    success: bool
    error_detail: Optional[str] = None


class UploadResponse(BaseModel):
    status_code: int
    results: List[UploadResult] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def urls(self) -> List[str]:
        return [r.public_url for r in self.results if r.success and r.public_url]

    def to_body(self) -> dict:
        results = [r.model_dump() for r in self.results]
        if self.error is not None:
            return {"error": self.error, "results": results}
        urls = self.urls
        return {"fileUrl": urls[0] if urls else "", "fileUrls": urls, "results": results}
