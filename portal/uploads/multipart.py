"""Single-pass multipart/form-data decoder built on python-multipart.

The body must already be fully buffered (and base64-decoded when the gateway
delivers it that way). Events come back in wire order; nothing is written
anywhere from here.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header

from portal.common.errors import DecodeError
from portal.uploads.models import (
    FieldEvent,
    FileField,
    FilePartEvent,
    FileStream,
    MultipartEvent,
    UploadRequest,
)

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"


def parse_boundary(content_type: Optional[str]) -> bytes:
    ctype, params = parse_options_header(content_type or "")
    if ctype.lower() != b"multipart/form-data":
        raise DecodeError(f"Unsupported content type: {content_type or '<missing>'}")
    boundary = params.get(b"boundary")
    if not boundary:
        raise DecodeError("Missing multipart boundary")
    return boundary


class _PartCollector:
    """Callback sink for MultipartParser; turns raw parts into events."""

    def __init__(self) -> None:
        self.events: List[MultipartEvent] = []
        self.finished = False
        self._headers: List[Tuple[bytes, bytes]] = []
        self._header_field = b""
        self._header_value = b""
        self._chunks: List[bytes] = []

    def callbacks(self) -> Dict[str, object]:
        return {
            "on_part_begin": self.on_part_begin,
            "on_part_data": self.on_part_data,
            "on_part_end": self.on_part_end,
            "on_header_field": self.on_header_field,
            "on_header_value": self.on_header_value,
            "on_header_end": self.on_header_end,
            "on_end": self.on_end,
        }

    def on_part_begin(self) -> None:
        self._headers = []
        self._chunks = []

    def on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_field += data[start:end]

    def on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += data[start:end]

    def on_header_end(self) -> None:
        self._headers.append((self._header_field.lower(), self._header_value))
        self._header_field = b""
        self._header_value = b""

    def on_part_data(self, data: bytes, start: int, end: int) -> None:
        if end > start:
            self._chunks.append(bytes(data[start:end]))

    def on_part_end(self) -> None:
        headers = dict(self._headers)
        disposition, options = parse_options_header(headers.get(b"content-disposition"))
        if disposition.lower() != b"form-data":
            raise DecodeError("Multipart part is missing a form-data Content-Disposition")
        name = options.get(b"name")
        if name is None:
            raise DecodeError("Multipart part is missing a field name")
        field_name = name.decode("utf-8", errors="replace")
        filename = options.get(b"filename")
        if filename is None:
            value = b"".join(self._chunks).decode("utf-8", errors="replace")
            self.events.append(FieldEvent(name=field_name, value=value))
        elif not filename and not self._chunks:
            # browsers send an empty part for an unselected file input
            logger.debug("Skipping empty file part %s", field_name)
        else:
            mime_type = headers.get(b"content-type", b"").decode("latin-1").strip()
            self.events.append(
                FilePartEvent(
                    field_name=field_name,
                    filename=filename.decode("utf-8", errors="replace"),
                    mime_type=mime_type or DEFAULT_MIME_TYPE,
                    stream=FileStream(self._chunks),
                )
            )
        self._chunks = []

    def on_end(self) -> None:
        self.finished = True


def decode_multipart(content_type: Optional[str], body: bytes) -> List[MultipartEvent]:
    """Decode ``body`` into field and file-part events, in wire order.

    Raises DecodeError for a bad header, a parser failure, or a body that ends
    before the closing boundary.
    """
    boundary = parse_boundary(content_type)
    collector = _PartCollector()
    parser = MultipartParser(boundary, collector.callbacks())
    try:
        parser.write(body)
        parser.finalize()
    except MultipartParseError as exc:
        raise DecodeError(f"Malformed multipart body: {exc}") from exc
    if not collector.finished:
        raise DecodeError("Truncated multipart body: closing boundary not found")
    logger.debug("Decoded %d multipart parts (%d bytes)", len(collector.events), len(body))
    return collector.events


def decode_request(request: UploadRequest) -> List[FileField]:
    """Decode ``request.body``; field values land in ``request.fields``."""
    files: List[FileField] = []
    for event in decode_multipart(request.content_type_header, request.body):
        if isinstance(event, FieldEvent):
            request.fields[event.name] = event.value
        else:
            files.append(
                FileField(
                    field_name=event.field_name,
                    original_filename=event.filename,
                    mime_type=event.mime_type,
                    stream=event.stream,
                )
            )
    return files
