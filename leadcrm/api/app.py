"""
leadcrm HTTP API.

Endpoints:
- GET  /health
- /api/automations/*, /api/enrich, /api/run-enrichment-all (pipeline)
- /api/contacts/*, /api/activities/*, /api/follow-ups (CRM basics)
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from leadcrm import __version__
from leadcrm.api import routes_contacts, routes_pipeline
from leadcrm.api.deps import Services
from leadcrm.errors import ActivityLocked, LeadCrmError, NotFound

logger = logging.getLogger(__name__)


def create_app(services: Optional[Services] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "services", None) is None:
            from leadcrm.db import init_db

            init_db()
            app.state.services = Services.from_config()
            logger.info("[api] services built from environment")
        yield
        shutdown = getattr(app.state.services.supervisor, "shutdown", None)
        if shutdown is not None:
            # queued background enrichment is dropped on exit
            shutdown(False)

    app = FastAPI(title="leadcrm", version=__version__, lifespan=lifespan)
    app.state.services = services

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        loc = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        msg = first.get("msg", "invalid request")
        return JSONResponse({"error": f"{loc}: {msg}" if loc else msg}, status_code=400)

    @app.exception_handler(NotFound)
    async def _not_found(request: Request, exc: NotFound):
        return JSONResponse({"error": str(exc)}, status_code=404)

    @app.exception_handler(ActivityLocked)
    async def _activity_locked(request: Request, exc: ActivityLocked):
        return JSONResponse({"error": str(exc)}, status_code=409)

    @app.exception_handler(LeadCrmError)
    async def _leadcrm_error(request: Request, exc: LeadCrmError):
        logger.error("[api] %s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse({"error": str(exc)}, status_code=500)

    @app.get("/health")
    def health():
        return {
            "service": "leadcrm",
            "status": "ok",
            "version": __version__,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    app.include_router(routes_pipeline.router)
    app.include_router(routes_contacts.router)
    return app
