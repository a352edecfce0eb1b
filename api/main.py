"""
Order Fulfillment API - Main Application.

FastAPI application with CORS enabled for the operations portal.

Run locally with:
    uvicorn api.main:app --reload
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import __version__
from repositories.client import EngineSettings

settings = EngineSettings.from_env()

logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Create FastAPI application
app = FastAPI(
    title="Order Fulfillment API",
    description="Match inbound leads to attorney fulfillment orders and assign them atomically",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Configure CORS - the portal calls this API from the browser
# TODO: Restrict origins to the portal's domain once it is fixed
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["Health"])
def health_check():
    """
    Health check endpoint.

    Returns the API status, version and configured storage backend.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "service": "order-fulfillment-api",
        "store_backend": settings.store_backend,
    }


@app.get("/", tags=["Root"])
def root():
    """
    Root endpoint with API information.
    """
    return {
        "message": "Order Fulfillment API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health"
    }


# Import and include routers
from api.routers import assignments, orders, recommendations

app.include_router(recommendations.router, prefix="/api/v1", tags=["Recommendations"])
app.include_router(assignments.router, prefix="/api/v1", tags=["Assignments"])
app.include_router(orders.router, prefix="/api/v1", tags=["Orders"])
