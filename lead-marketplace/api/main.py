"""
Lead Marketplace API - Main Application.

FastAPI application with CORS enabled for frontend communication.
"""

import logging
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api import __version__
from domain.errors import LedgerError

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Create FastAPI application
app = FastAPI(
    title="Lead Marketplace API",
    description="REST API for purchasing leads with a prepaid vendor balance",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Configure CORS - Allow all origins for development
# TODO: Restrict origins once the production frontend domain is fixed
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    """
    Render ledger errors as {"error": {"code", "message", "details"}}.

    The status code comes from the error kind; retryable errors add a
    Retry-After header.
    """
    body = {"code": exc.code, "message": exc.message}
    if exc.details:
        body["details"] = dict(exc.details)

    headers = {"Retry-After": "1"} if exc.retryable else None
    level = logging.WARNING if exc.retryable else logging.INFO
    logger.log(
        level,
        "Request rejected: %s",
        exc.code,
        extra={"path": request.url.path, "status_code": exc.status_code},
    )
    return JSONResponse(status_code=exc.status_code, content={"error": body}, headers=headers)


@app.get("/health", tags=["Health"])
def health_check():
    """
    Health check endpoint.

    Returns the API status and version.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "service": "lead-marketplace-api"
    }


@app.get("/", tags=["Root"])
def root():
    """
    Root endpoint with API information.
    """
    return {
        "message": "Lead Marketplace API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health"
    }


# Import and include routers
from api.routers import admin, leads, me

app.include_router(leads.router, prefix="/api/v1", tags=["Leads"])
app.include_router(me.router, prefix="/api/v1", tags=["Account"])
app.include_router(admin.router, prefix="/api/v1", tags=["Admin"])
