"""Application factory for the Reelvault Catalog API."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .errors import CatalogError
from .routers import admin, catalog, health, streaming, sync, watchlist
from .settings import CatalogSettings
from .state import AppState

logger = logging.getLogger(__name__)


def create_app(settings: CatalogSettings | None = None) -> FastAPI:
    """Build and configure the FastAPI application."""

    resolved_settings = settings or CatalogSettings()
    app_state = AppState(settings=resolved_settings)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        if resolved_settings.sync_schedule_enabled:
            app_state.scheduler.start(resolved_settings.sync_schedule)
        try:
            yield
        finally:
            app_state.scheduler.stop()
            app_state.engine.dispose()

    app = FastAPI(title="Reelvault Catalog API", version="0.1.0", lifespan=lifespan)
    app.state.app_state = app_state
    app.state.settings = app_state.settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=resolved_settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(CatalogError)
    async def handle_catalog_error(_: Request, exc: CatalogError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code, content={"success": False, "message": exc.message}
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500, content={"success": False, "message": "Internal server error"}
        )

    for router in (
        health.router,
        catalog.router,
        streaming.router,
        watchlist.router,
        admin.router,
        sync.router,
    ):
        app.include_router(router)

    return app
