"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from settlement.api.middleware.error_handler import error_handler_middleware
from settlement.api.middleware.latency_logging import latency_logging_middleware
from settlement.api.routes import commission, health, orders, payouts, settings, webhook_events, webhooks
from settlement.core.config import get_settings
from settlement.core.scheduler import init_payout_scheduler, shutdown_payout_scheduler

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Starts the payout sweep loop on startup and stops it on shutdown.

    Args:
        app: FastAPI application instance.

    Yields:
        None: Control back to the application.
    """
    app_settings = get_settings()
    logger.info("Starting %s in %s mode", app_settings.app_name, app_settings.app_env)

    await init_payout_scheduler()
    logger.info("Payout scheduler initialized (enabled=%s)", app_settings.payout_sweep_enabled)

    yield

    await shutdown_payout_scheduler()
    logger.info("Payout scheduler shutdown")
    logger.info("Shutting down %s", app_settings.app_name)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured application instance.
    """
    app_settings = get_settings()

    app = FastAPI(
        title="Marketplace Settlement API",
        description="Payment confirmation, commission and vendor payout backend",
        version="0.1.0",
        docs_url="/docs" if app_settings.debug else None,
        redoc_url="/redoc" if app_settings.debug else None,
        openapi_url="/openapi.json" if app_settings.debug else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add error handler middleware (catches all errors raised by routes)
    app.add_middleware(BaseHTTPMiddleware, dispatch=error_handler_middleware)

    # Add latency logging middleware (outermost, sees final status codes)
    app.add_middleware(BaseHTTPMiddleware, dispatch=latency_logging_middleware)

    # Mount health routes at root level (no prefix)
    app.include_router(health.router)

    # Provider webhooks
    app.include_router(webhooks.router)

    # Admin routes
    app.include_router(payouts.router)
    app.include_router(commission.router)
    app.include_router(settings.router)
    app.include_router(orders.router)
    app.include_router(webhook_events.router)

    # Vendor self-service routes
    app.include_router(payouts.vendor_router)

    return app


# Create application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    app_settings = get_settings()
    uvicorn.run(
        "settlement.main:app",
        host=app_settings.host,
        port=app_settings.port,
        reload=app_settings.debug,
    )
