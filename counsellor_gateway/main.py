"""FastAPI-Einstiegspunkt für das Counsellor Gateway."""
import logging
import traceback
from typing import Optional

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles

from counsellor_gateway.core.config import Settings, get_settings
from counsellor_gateway.core.logging_setup import setup_logging
from counsellor_gateway.core.models import ErrorEnvelope
from counsellor_gateway.core.proxy import UpstreamProxy
from counsellor_gateway.routers import conversation as conversation_router

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None) -> FastAPI:
    """Baut die App mit expliziter Konfiguration.

    - ``settings`` landet unverändert in ``app.state.settings``.
    - ``transport`` wird an den Upstream-Proxy durchgereicht (Tests).
    """
    settings = settings or get_settings()
    setup_logging(settings.log_file)

    app = FastAPI(
        title="Counsellor Gateway",
        version="1.0.0",
        description="Web front end and forwarding gateway for the counsellor API.",
    )
    app.state.settings = settings
    app.state.proxy = UpstreamProxy(settings, transport=transport)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        logger.info(f"{request.method} {request.url.path}{'?' + request.url.query if request.url.query else ''}")
        return await call_next(request)

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.exception(f"Application error on {request.method} {request.url.path}")
        envelope = ErrorEnvelope(error="Internal Server Error", message=str(exc))
        if settings.is_development:
            envelope.stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        return JSONResponse(status_code=500, content=envelope.to_content())

    @app.get("/health", include_in_schema=False)
    async def health():
        return {"status": "ok", "upstream": settings.upstream_base_url}

    app.include_router(conversation_router.router)

    static_dir = settings.static_dir

    @app.get("/", include_in_schema=False)
    async def index():
        index_file = static_dir / "index.html"
        if not index_file.is_file():
            raise HTTPException(status_code=404, detail="Not Found")
        return FileResponse(index_file)

    # Alle übrigen Pfade: statische Dateien des Web-Clients (muss zuletzt stehen).
    if static_dir.is_dir():
        app.mount("/", StaticFiles(directory=static_dir), name="static")
    else:
        logger.warning(f"Static directory {static_dir} not found, serving API only")

    logger.info(f"Proxying requests to {settings.upstream_base_url}")
    return app
