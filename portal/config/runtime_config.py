"""Runtime configuration helpers for the portal backend."""
from __future__ import annotations

import json
import logging
import os
from functools import lru_cache
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, Field

from portal.common.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_FOLDER = "general"


def _get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.getenv(name, default)


def _str_to_bool(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "y"}


def get_gcp_project() -> Optional[str]:
    return (
        _get_env("GCP_PROJECT_ID")
        or _get_env("GCP_PROJECT")
        or _get_env("VITE_FIREBASE_PROJECT_ID")
    )


def get_gcs_bucket() -> Optional[str]:
    return _get_env("GCS_BUCKET")


def get_default_folder() -> str:
    return _get_env("UPLOAD_DEFAULT_FOLDER") or DEFAULT_FOLDER


def get_public_read() -> bool:
    return _str_to_bool(_get_env("GCS_PUBLIC_READ"))


def get_required_fields() -> Tuple[str, ...]:
    raw = _get_env("UPLOAD_REQUIRED_FIELDS") or ""
    return tuple(f.strip() for f in raw.split(",") if f.strip())


def parse_credentials(var_name: str) -> Dict[str, Any]:
    """Parse a service-account JSON document held in ``var_name``."""
    raw = _get_env(var_name)
    if not raw:
        raise ConfigError(f"Missing {var_name}: service-account credentials are not configured")
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"{var_name} is not valid JSON: {exc.msg}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"{var_name} must be a JSON object")
    return data


class UploadConfig(BaseModel):
    """Validated settings for the upload handler, built once per process."""

    bucket: str
    project_id: Optional[str] = None
    credentials: Dict[str, Any] = Field(default_factory=dict, repr=False)
    default_folder: str = DEFAULT_FOLDER
    public_read: bool = False
    required_fields: Tuple[str, ...] = ()


class FirebaseConfig(BaseModel):
    """Validated settings for the Firebase Admin backed role service."""

    project_id: Optional[str] = None
    credentials: Dict[str, Any] = Field(default_factory=dict, repr=False)


def _load_upload_config() -> UploadConfig:
    credentials = parse_credentials("GOOGLE_CLOUD_CREDENTIALS")
    bucket = get_gcs_bucket()
    if not bucket:
        raise ConfigError("Missing GCS_BUCKET: storage bucket is not configured")
    return UploadConfig(
        bucket=bucket,
        project_id=get_gcp_project() or credentials.get("project_id"),
        credentials=credentials,
        default_folder=get_default_folder(),
        public_read=get_public_read(),
        required_fields=get_required_fields(),
    )


@lru_cache()
def load_upload_config() -> UploadConfig:
    """Return the cached upload config; raises ConfigError (uncached) when invalid."""
    try:
        return _load_upload_config()
    except ConfigError as exc:
        logger.error("Upload config invalid: %s", exc.message)
        raise


@lru_cache()
def load_firebase_config() -> FirebaseConfig:
    try:
        credentials = parse_credentials("FIREBASE_ADMIN_CREDENTIALS")
    except ConfigError as exc:
        logger.error("Firebase config invalid: %s", exc.message)
        raise
    return FirebaseConfig(
        project_id=get_gcp_project() or credentials.get("project_id"),
        credentials=credentials,
    )


def reset_config_cache() -> None:
    """Drop cached configs so the next call re-reads the environment (tests)."""
    load_upload_config.cache_clear()
    load_firebase_config.cache_clear()

