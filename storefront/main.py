"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from storefront.api.middleware.error_handler import error_handler_middleware
from storefront.api.middleware.latency_logging import latency_logging_middleware
from storefront.api.middleware.request_size import request_size_limit_middleware
from storefront.api.routes import admin, driver, events, health, orders, payments, webhooks
from storefront.core.cache import CacheConfig, TTLCache
from storefront.core.config import get_settings
from storefront.core.database import Database
from storefront.core.rate_limiter import init_rate_limiter, shutdown_rate_limiter
from storefront.core.stripe import configure_stripe
from storefront.services.notification_hub import NotificationHub

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Creates the database, cache, rate limiter and notification hub on
    startup and releases them in reverse order on shutdown.

    Args:
        app: FastAPI application instance.

    Yields:
        None: Control back to the application.
    """
    settings = get_settings()
    logger.info("Starting %s in %s mode", settings.app_name, settings.app_env)

    configure_stripe()

    database = Database.from_settings()
    if settings.database_auto_create:
        await database.create_all()
    app.state.database = database
    logger.info("Database engine created")

    cache = TTLCache(CacheConfig.from_settings())
    await cache.start_cleanup_task()
    app.state.cache = cache
    logger.info("Cache initialized")

    await init_rate_limiter()
    logger.info("Rate limiter initialized")

    app.state.hub = NotificationHub()
    logger.info("Notification hub initialized")

    yield

    await app.state.hub.shutdown()
    logger.info("Notification hub shutdown")
    await shutdown_rate_limiter()
    logger.info("Rate limiter shutdown")
    await cache.stop_cleanup_task()
    logger.info("Cache shutdown")
    await database.dispose()
    logger.info("Database engine disposed")
    logger.info("Shutting down %s", settings.app_name)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="Storefront API",
        description="Order coordination backend for a delivery storefront",
        version="0.1.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add error handler middleware (formats errors raised by routes)
    app.add_middleware(BaseHTTPMiddleware, dispatch=error_handler_middleware)

    # Reject oversized bodies before they reach a route
    app.add_middleware(BaseHTTPMiddleware, dispatch=request_size_limit_middleware)

    app.add_middleware(BaseHTTPMiddleware, dispatch=latency_logging_middleware)

    # Mount health routes at root level (no prefix)
    app.include_router(health.router)

    api_v1_router = APIRouter(prefix="/api/v1")
    api_v1_router.include_router(orders.router)
    api_v1_router.include_router(driver.router)
    api_v1_router.include_router(payments.router)
    api_v1_router.include_router(webhooks.router)
    api_v1_router.include_router(events.router)
    api_v1_router.include_router(admin.router)

    app.include_router(api_v1_router)

    return app


# Create application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "storefront.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
