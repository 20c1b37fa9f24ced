"""Prodflow Core FastAPI application."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..cache import CacheInvalidator
from ..config import Settings, get_settings
from ..database import Database
from .routers import (
    audit,
    auth,
    discovery,
    documents,
    experiments,
    feature_flags,
    ideas,
    okrs,
    organizations,
    personas,
    products,
    releases,
    roadmap,
    sprints,
    teams,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("prodflow-core")


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    """
    Build the API application.

    Args:
        settings: Configuration; read from the environment when omitted
        database: An existing database (tests pass an in-memory one). When
            omitted one is created from ``settings`` at startup and disposed
            at shutdown.
    """
    settings = settings or get_settings()
    logging.getLogger("prodflow-core").setLevel(settings.log_level.upper())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = database is None
        app.state.database = Database.from_settings(settings) if owned else database
        app.state.cache = CacheInvalidator()
        app.state.settings = settings
        logger.info("Starting Prodflow Core API")
        try:
            yield
        finally:
            if owned:
                app.state.database.dispose()
            logger.info("Prodflow Core API stopped")

    app = FastAPI(
        title="Prodflow Core API",
        description="Product management for multi-tenant organizations",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Business routers under /api/v1
    app.include_router(auth.router, prefix="/api/v1/auth")
    app.include_router(organizations.router, prefix="/api/v1/organizations")
    for module in (
        teams, products, ideas, okrs, releases, feature_flags, sprints,
        roadmap, experiments, documents, personas, discovery, audit,
    ):
        app.include_router(module.router, prefix="/api/v1")

    @app.get("/")
    def root():
        """Root endpoint with server info."""
        return {
            "name": "Prodflow Core API",
            "version": __version__,
            "authentication": True,
            "docs": "/docs",
        }

    @app.get("/health")
    def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


app = create_app()
