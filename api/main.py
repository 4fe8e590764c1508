"""
Nightlife Marketplace API - Main Application.

FastAPI application with CORS enabled for frontend communication.
"""

import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import __version__

logging.basicConfig(
    level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

# Create FastAPI application
app = FastAPI(
    title="Nightlife Marketplace API",
    description="Tickets and menu orders for venues: carts, checkout and QR redemption",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Configure CORS - Allow all origins for development
# TODO: Restrict origins to the web and staff app domains in production
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

    Returns the API status and version.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "service": "nightlife-marketplace-api"
    }


@app.get("/", tags=["Root"])
def root():
    return {
        "message": "Nightlife Marketplace API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health"
    }


# Import and include routers
from api.routers import cart, checkout, purchases, redemptions

app.include_router(cart.router, prefix="/api/v1", tags=["Cart"])
app.include_router(checkout.router, prefix="/api/v1", tags=["Checkout"])
app.include_router(purchases.router, prefix="/api/v1", tags=["Purchases"])
app.include_router(redemptions.router, prefix="/api/v1", tags=["Redemptions"])
