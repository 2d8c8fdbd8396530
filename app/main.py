"""
Data exchange API: entity registry, import preview and jobs, export jobs
and enterprise agreement drafts.

Run with ``uvicorn app.main:app``.
"""
import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from .api.routers import agreements, entities, export_jobs, import_jobs, mapping
from .core.config import settings
from .core.logging_config import configure_logging

# Ensure logging is configured before the application starts serving requests.
configure_logging(settings.log_level)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle - startup and shutdown events."""
    if os.getenv("SKIP_DB_INIT") == "1":
        logger.info("SKIP_DB_INIT=1 detected; skipping database bootstrap during startup")
        yield
        return

    from .db.session import create_all_tables

    try:
        create_all_tables()
        logger.info("Database tables ready")
    except Exception:
        logger.exception("Failed to initialize database tables; the application cannot start")
        raise

    yield


app = FastAPI(
    title="Data Exchange API",
    version="1.0.0",
    description="Bulk import and export of workforce records, and pay-rate extraction from enterprise agreements",
    lifespan=lifespan
)

allowed_origins = [origin.strip() for origin in settings.allowed_origins.split(",") if origin.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(entities.router)
app.include_router(mapping.router)
app.include_router(import_jobs.router)
app.include_router(export_jobs.router)
app.include_router(agreements.router)


@app.get("/")
async def root():
    """Root endpoint returning API information."""
    return {
        "message": "Data Exchange API",
        "version": "1.0.0"
    }


@app.get("/health")
def health_check():
    """Liveness plus a database round-trip."""
    from .db.session import get_engine

    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError as e:
        logger.warning("Health check could not reach the database: %s", e)
        database = "unavailable"
    return {
        "status": "healthy" if database == "ok" else "degraded",
        "database": database,
        "timestamp": datetime.now().isoformat(),
        "service": "data-exchange-api"
    }
