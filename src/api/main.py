"""
FastAPI Main Application
Entry point for the claims reporting API
Source: https://fastapi.tiangolo.com/
"""

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.api.config import settings
from src.api.routes import health, reports
from src.db.connection import close_db_connection
from src.schemas.report import ErrorResponse
from src.services.reporting.service import ReportServiceError
from src.utils.logging import get_logger, setup_logging

# Setup logging
setup_logging(
    level=settings.LOG_LEVEL,
    log_file=settings.LOG_FILE,
    json_logs=settings.is_production,
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):  # type: ignore[no-untyped-def]  # noqa: ARG001
    """
    Application lifespan manager.

    Source: https://fastapi.tiangolo.com/advanced/events/
    """
    # Startup
    logger.info(f"Starting application in {settings.ENVIRONMENT} mode")
    logger.info(f"Debug mode: {settings.DEBUG}")

    yield

    # Shutdown
    logger.info("Shutting down application")
    await close_db_connection()
    logger.info("Database connections closed")


app = FastAPI(
    title="Claims Reporting API",
    description="Summary, monthly and export reports over the expense claims ledger",
    version="1.0.0",
    docs_url="/docs" if not settings.is_production else None,  # Disable docs in production
    redoc_url="/redoc" if not settings.is_production else None,
    openapi_url="/openapi.json" if not settings.is_production else None,
    lifespan=lifespan,
)

# CORS middleware
# Source: https://fastapi.tiangolo.com/tutorial/cors/
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=settings.CORS_CREDENTIALS,
    allow_methods=settings.CORS_METHODS,
    allow_headers=settings.CORS_HEADERS,
)


def _error_response(message: str) -> JSONResponse:
    body = ErrorResponse(message=message).model_dump(by_alias=True, exclude_none=True)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body)


@app.exception_handler(ReportServiceError)
async def report_error_handler(request: Request, exc: ReportServiceError) -> JSONResponse:
    """Report failures never leak detail to the client."""
    logger.opt(exception=exc).error(f"Report request failed: {request.method} {request.url.path}")
    return _error_response("Server error")


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Failure detail stays in the log in every environment."""
    logger.opt(exception=exc).error(f"Unhandled error: {request.method} {request.url.path}")
    return _error_response("Server error")


# Include routers
app.include_router(health.router)
app.include_router(reports.router)


@app.get("/")
async def root() -> dict[str, Any]:
    """Root endpoint with API information."""
    return {
        "name": "Claims Reporting API",
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT,
        "docs": "/docs" if not settings.is_production else "disabled",
    }
