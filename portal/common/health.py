"""Liveness and readiness probes for the hosting platform."""
from typing import Dict

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from portal.common.errors import ConfigError
from portal.config.runtime_config import load_firebase_config, load_upload_config

PORTAL_VERSION = "0.1.0"

router = APIRouter(tags=["system"])


class HealthStatus(BaseModel):
    status: str
    version: str = PORTAL_VERSION
    checks: Dict[str, str] = Field(default_factory=dict)


@router.get("/health", response_model=HealthStatus)
def health_check():
    return HealthStatus(status="ok")


@router.get("/ready", response_model=HealthStatus)
def readiness_check():
    checks: Dict[str, str] = {}
    for name, loader in (("uploads", load_upload_config), ("roles", load_firebase_config)):
        try:
            loader()
            checks[name] = "ok"
        except ConfigError as exc:
            checks[name] = exc.message
    ready = all(v == "ok" for v in checks.values())
    body = HealthStatus(status="ok" if ready else "degraded", checks=checks)
    return JSONResponse(content=body.model_dump(), status_code=200 if ready else 503)
