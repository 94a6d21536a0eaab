"""
Vehicle Protection Quote API - Main Application.

Quote submission, pricing administration and round-robin lead distribution.
Logging is configured here from LOG_LEVEL; every other module only creates its
own logger.
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import __version__
from api.routers import pricing, quotations, sellers
from services.settings import get_settings

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="Vehicle Protection Quote API",
    description="Tiered vehicle pricing and fair seller assignment for quote requests",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

# TODO: Restrict origins once the quote wizard and admin panel domains are fixed
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(quotations.router, prefix="/api/v1", tags=["Quotations"])
app.include_router(pricing.router, prefix="/api/v1", tags=["Pricing"])
app.include_router(sellers.router, prefix="/api/v1", tags=["Round-Robin"])


@app.get("/health", tags=["Health"])
def health_check():
    """
    Health check endpoint.

    Reports the API version and the quote settings in effect. Does not touch
    the database.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "service": "vehicle-quote-api",
        "enrollment_discount_percent": str(settings.discount_percent),
        "quotation_validity_days": settings.quotation_validity_days,
    }
