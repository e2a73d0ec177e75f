"""Deterministic object-store keys for portal uploads.

Layouts, which existing stored objects depend on:
- private: private_files/{owner_id}/{folder}/{file_name}
- public:  {folder}/{file_name}
"""
from __future__ import annotations

from typing import Optional
from urllib.parse import quote

from portal.config.runtime_config import DEFAULT_FOLDER

PRIVATE_PREFIX = "private_files"
UNKNOWN_OWNER = "unknown"
FALLBACK_FILENAME = "upload.bin"


def _folder_path(folder: Optional[str], default_folder: str) -> str:
    cleaned = (folder or "").strip().strip("/")
    return cleaned or default_folder


def _file_segment(file_name: Optional[str]) -> str:
    # browsers on Windows may send the full client path
    base = (file_name or "").replace("\\", "/").rsplit("/", 1)[-1].strip()
    return quote(base or FALLBACK_FILENAME, safe="")


def build_key(
    owner_id: Optional[str],
    folder: Optional[str],
    file_name: Optional[str],
    *,
    default_folder: str = DEFAULT_FOLDER,
    private: bool = True,
) -> str:
    folder_path = _folder_path(folder, default_folder)
    segment = _file_segment(file_name)
    if not private:
        return f"{folder_path}/{segment}"
    # one path level per owner; "a/b" must not reach into another owner's folder
    owner = quote((owner_id or "").strip() or UNKNOWN_OWNER, safe="")
    return f"{PRIVATE_PREFIX}/{owner}/{folder_path}/{segment}"
