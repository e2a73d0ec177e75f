"""FastAPI application factory for the portal backend."""
from __future__ import annotations

from fastapi import FastAPI

from portal.common.errors import register_error_handlers
from portal.common.health import router as health_router
from portal.roles.routes import router as roles_router
from portal.uploads.routes import router as uploads_router


def create_app() -> FastAPI:
    app = FastAPI(title="Residential Portal Backend")
    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(uploads_router)
    app.include_router(roles_router)
    return app


app = create_app()
