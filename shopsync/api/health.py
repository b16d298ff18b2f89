"""
Health check, status and metrics endpoints
"""
from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from shopsync import __version__
from shopsync.config import get_settings
from shopsync.models.base import utcnow
from shopsync.scheduler import get_scheduled_jobs
from shopsync.services.sync_metrics import get_sync_metrics

settings = get_settings()

router = APIRouter()


@router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": utcnow().isoformat(),
        "version": __version__
    }


@router.get("/status")
async def get_status():
    """Get system status"""
    return {
        "app_name": settings.app_name,
        "version": __version__,
        "environment": settings.environment,
        "shopify_api_version": settings.shopify_api_version,
        "features": {
            "scheduler": settings.scheduler_enabled,
            "fixtures": settings.fixtures_enabled,
            "webhook_verification": bool(settings.shopify_webhook_secret),
        },
        "sync_interval_seconds": settings.sync_interval_seconds,
        "scheduled_jobs": get_scheduled_jobs(),
        "timestamp": utcnow().isoformat()
    }


@router.get("/metrics")
def prometheus_metrics():
    """Prometheus exposition of sync and webhook telemetry"""
    return Response(generate_latest(get_sync_metrics().registry), media_type=CONTENT_TYPE_LATEST)
