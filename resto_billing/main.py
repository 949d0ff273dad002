"""
Resto Billing - Main Application Entry Point
Mercado Pago billing webhooks for the multi-tenant restaurant platform
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import structlog

from resto_billing import __version__
from resto_billing.api import webhooks
from resto_billing.core.config import get_settings
from resto_billing.core.database import init_db
from resto_billing.core.logging import configure_logging

configure_logging()

logger = structlog.get_logger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    logger.info("Initializing Resto Billing backend")
    if settings.AUTO_CREATE_TABLES:
        init_db()
    else:
        logger.info("Database managed by platform migrations")

    yield

    # Shutdown
    logger.info("Shutting down Resto Billing backend")


# Create FastAPI application
app = FastAPI(
    title="Resto Billing API",
    description="Mercado Pago subscription, payment and lead provisioning webhooks",
    version=__version__,
    lifespan=lifespan,
)

# Configure middleware stack
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(webhooks.router, prefix=f"{settings.API_V1_PREFIX}/webhooks", tags=["webhooks"])


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "service": "resto-billing-api"}


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Resto Billing API",
        "version": __version__,
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "resto_billing.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.ENVIRONMENT == "development",
        log_level=settings.LOG_LEVEL.lower(),
    )
