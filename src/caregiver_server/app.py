"""Application factory and CLI entry point.

``create_app()`` builds the FastAPI application with:
  - Lifespan handler that builds the questionnaire engine once
  - CORS middleware
  - Global exception handlers (QuestionnaireError mapped to 4xx/503)
  - All API routes mounted under ``/api/v1``
  - A ``/health`` endpoint for readiness probes

The ``cli()`` function is the ``caregiver-server`` console-script entry point.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from caregiver_db.engine import dispose_engine, get_engine
from caregiver_questionnaire.engine import QuestionnaireEngine
from caregiver_questionnaire.errors import QuestionnaireError

from caregiver_server.config import ServerSettings
from caregiver_server.errors import generic_error_handler, questionnaire_error_handler
from caregiver_server.profiles import DatabaseProfileWriter
from caregiver_server.routes import register_routes

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Lifespan: runs once at startup/shutdown
# ------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Initialise shared resources at startup, tear down on shutdown.

    Startup:
      1. Build the ``QuestionnaireEngine`` with the database profile writer
      2. Stash it on ``app.state`` for dependency injection

    Shutdown:
      1. Dispose the database engine's connection pool
    """
    app.state.engine = QuestionnaireEngine(profiles=DatabaseProfileWriter())
    logger.info("QuestionnaireEngine ready")

    yield

    # --- Shutdown ---
    await dispose_engine()
    logger.info("Database engine disposed")


# ------------------------------------------------------------------
# Factory
# ------------------------------------------------------------------

def create_app(settings: ServerSettings | None = None) -> FastAPI:
    """Build and return the configured FastAPI application."""
    if settings is None:
        settings = ServerSettings.from_env()

    # --- Configure logging ---
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(
        title="Caregiver Questionnaire API",
        description="REST API for caregiver onboarding and wellbeing questionnaires",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Store settings so the lifespan handler and dependencies can read them
    app.state.settings = settings

    # --- CORS ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Exception handlers ---
    app.add_exception_handler(QuestionnaireError, questionnaire_error_handler)
    app.add_exception_handler(Exception, generic_error_handler)

    # --- Health check (outside /api/v1 prefix) ---
    @app.get("/health")
    async def health() -> JSONResponse:
        """Readiness probe: verifies DB connectivity."""
        try:
            engine = get_engine()
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return JSONResponse({"status": "ok"})
        except (SQLAlchemyError, OSError) as exc:
            logger.error("Health check failed: %s", exc)
            return JSONResponse(
                status_code=503,
                content={"status": "error", "detail": "database unreachable"},
            )

    # --- Mount all API routes ---
    register_routes(app)

    return app


# ------------------------------------------------------------------
# Module-level ASGI export (for uvicorn caregiver_server.app:app)
# ------------------------------------------------------------------
app = create_app()


# ------------------------------------------------------------------
# CLI entry point
# ------------------------------------------------------------------

def cli() -> None:
    """Console-script entry point: ``caregiver-server``."""
    import uvicorn

    settings = ServerSettings.from_env()
    uvicorn.run(
        "caregiver_server.app:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=False,
    )
