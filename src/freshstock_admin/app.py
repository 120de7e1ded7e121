"""FastAPI application factory."""

from __future__ import annotations

from fastapi import FastAPI

from . import __version__
from .config import get_settings
from .database import init_database
from .logging_config import setup_logging
from .routes import auth, bulk, catalog, checkout, ledger


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    settings = get_settings()
    setup_logging(settings)
    init_database()

    app = FastAPI(title=settings.app_name, version=__version__)

    @app.get("/health", tags=["system"])
    def health_check() -> dict[str, str]:
        return {"status": "ok"}

    app.include_router(auth.router)
    app.include_router(catalog.router)
    app.include_router(ledger.router)
    app.include_router(bulk.router)
    app.include_router(checkout.router)
    return app
