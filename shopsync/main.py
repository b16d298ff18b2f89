"""
shopsync
Main FastAPI application
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI

from shopsync import __version__
from shopsync.api import health, sync, webhooks
from shopsync.config import get_settings
from shopsync.utils.logger import log

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    # Startup
    log.info(f"Starting {settings.app_name} v{__version__}")
    log.info(f"Environment: {settings.environment}")

    # Initialize database
    try:
        from shopsync.models.base import init_db
        init_db()
        log.info("Database initialized")
    except Exception as e:
        log.error(f"Database initialization error: {str(e)}")

    # Start the scheduler for periodic tenant syncs
    from shopsync.scheduler import start_scheduler, stop_scheduler
    try:
        start_scheduler()
    except Exception as e:
        log.error(f"Scheduler startup error: {str(e)}")

    yield

    # Shutdown
    try:
        stop_scheduler()
    except Exception as e:
        log.error(f"Scheduler shutdown error: {str(e)}")
    log.info("Shutting down application")


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=__version__,
    description="""
    Multi-tenant Shopify catalog mirror

    - Periodic full sync of customers, orders and products per shop
    - Real-time updates from signed Shopify webhooks
    - Fixture datasets for demo and test shops
    """,
    lifespan=lifespan
)

# Include routers
app.include_router(health.router, tags=["health"])
app.include_router(sync.router)
app.include_router(webhooks.router)


@app.get("/")
async def root():
    """Root endpoint with API information"""
    return {
        "app": settings.app_name,
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "shopsync.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
    )
