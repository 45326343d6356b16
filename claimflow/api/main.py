"""
FastAPI Main Application
Entry point for the claims API
Source: https://fastapi.tiangolo.com/
"""

from contextlib import asynccontextmanager
from typing import Any

from anyio import to_thread
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from claimflow import __version__
from claimflow.api.config import settings
from claimflow.api.routes import (
    claim_audit,
    claim_files,
    claim_invoices,
    claims,
    health,
    lookups,
)
from claimflow.db.connection import close_db_connection
from claimflow.services.storage import get_storage
from claimflow.utils.errors import register_exception_handlers
from claimflow.utils.logging import get_logger, setup_logging

setup_logging(
    level=settings.LOG_LEVEL,
    log_file=settings.LOG_FILE,
    json_logs=settings.JSON_LOGS or settings.is_production,
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):  # type: ignore[no-untyped-def]  # noqa: ARG001
    logger.info(f"Starting claimflow API in {settings.ENVIRONMENT} mode")
    try:
        await to_thread.run_sync(get_storage().ensure_bucket_sync)
    except Exception as e:
        logger.warning(f"Object storage not ready at startup: {e}")
    yield
    logger.info("Shutting down application")
    await close_db_connection()


app = FastAPI(
    title="Claimflow API",
    description="Claims management backend: claim lifecycle, files and invoices",
    version=__version__,
    docs_url="/docs" if not settings.is_production else None,
    redoc_url="/redoc" if not settings.is_production else None,
    openapi_url="/openapi.json" if not settings.is_production else None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=settings.CORS_CREDENTIALS,
    allow_methods=settings.CORS_METHODS,
    allow_headers=settings.CORS_HEADERS,
)

register_exception_handlers(app)

app.include_router(health.router)
# Static claim sub-paths (/files/pending) are registered before /{claim_id}
app.include_router(claim_files.router)
app.include_router(claims.router)
app.include_router(claim_invoices.router)
app.include_router(claim_audit.router)
app.include_router(lookups.router)


@app.get("/")
async def root() -> dict[str, Any]:
    return {
        "name": "Claimflow API",
        "version": __version__,
        "environment": settings.ENVIRONMENT,
        "docs": "/docs" if not settings.is_production else "disabled",
    }
