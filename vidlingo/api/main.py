"""
FastAPI application for vidlingo.

Provides REST API for:
- Learner XP, level and streaks
- Exercise completions
- Vocabulary mastery and review queue
- Video watch progress and per-video statistics
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from config import get_settings
from vidlingo import __version__
from vidlingo.api.routers import progress_router
from vidlingo.db.database import check_database, dispose_engine, init_db
from vidlingo.logging_setup import configure_logging
from vidlingo.progress.errors import NotFoundError, ValidationFailure

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    # Startup
    configure_logging(settings)
    logger.info("Starting vidlingo progress service...")
    await init_db()
    logger.info(f"Service started on {settings.api_host}:{settings.api_port}")

    yield

    # Shutdown
    logger.info("Shutting down vidlingo progress service...")
    await dispose_engine()


app = FastAPI(
    title="vidlingo",
    description="Learning progress and mastery tracking for video-based language study.",
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ========================================
# Error Mapping
# ========================================


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": str(exc), "entity": exc.entity},
    )


@app.exception_handler(ValidationFailure)
async def validation_failure_handler(request: Request, exc: ValidationFailure) -> JSONResponse:
    logger.warning(f"Rejected {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": str(exc), "field": exc.field},
    )


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception(f"Database error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Database error"},
    )


# ========================================
# Health & Status Endpoints
# ========================================


@app.get("/", tags=["Health"])
def root() -> dict[str, str]:
    """Root endpoint returning service info."""
    return {
        "service": "vidlingo",
        "version": __version__,
        "status": "ok",
    }


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, Any]:
    """Health check with an actual database round trip."""
    db_status, db_error = await check_database()
    return {
        "status": "healthy" if db_status == "ok" else "unhealthy",
        "components": {"database": db_status},
        "errors": {"database": db_error} if db_error else {},
    }


# ========================================
# Include Routers
# ========================================

app.include_router(
    progress_router.router,
    prefix=settings.api_prefix,
    tags=["Learning Progress"],
)
