"""
SmartCRM Sync - FastAPI Backend
REST API the UI uses to queue changes, report connectivity, and show sync status.

Run: uvicorn smartcrm.api.app:app --reload --port 8000
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from smartcrm import __version__, config
from smartcrm.api.routers import sync
from smartcrm.logging_config import setup_logging

logger = logging.getLogger("smartcrm.api")


def create_app(engine=None) -> FastAPI:
    """Build the app. An injected engine is used as-is and left open at shutdown."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = None
        if getattr(app.state, "engine", None) is None:
            from smartcrm.sync.factory import build_engine
            setup_logging(config.LOG_LEVEL, config.LOG_FORMAT, config.LOG_FILE)
            owned = app.state.engine = build_engine()
        yield
        if owned is not None:
            owned.close()
            app.state.engine = None

    app = FastAPI(
        title="SmartCRM Sync",
        description="Offline-first change queue for the SmartCRM web client.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.engine = engine

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(sync.router)

    @app.get("/api/health")
    def health():
        eng = app.state.engine
        return {
            "status": "healthy" if eng is not None else "starting",
            "version": __version__,
            "online": eng.is_online if eng is not None else None,
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=config.API_HOST, port=config.API_PORT)
