"""
Shopify webhook receiver
"""
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from shopsync.config import Settings, get_settings
from shopsync.models.base import get_db
from shopsync.services.tenant_service import TenantNotFoundError, get_tenant_by_domain
from shopsync.services.webhook_service import WebhookService, get_webhook_service
from shopsync.utils.logger import log
from shopsync.utils.security import verify_webhook_signature

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def _process_webhook(
    body: bytes,
    hmac_header: Optional[str],
    topic: Optional[str],
    shop_domain: Optional[str],
    db: Session,
    service: WebhookService,
    secret: str,
) -> dict:
    if not verify_webhook_signature(body, hmac_header, secret):
        log.warning(f"Rejected webhook with invalid signature (shop={shop_domain}, topic={topic})")
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    try:
        tenant = get_tenant_by_domain(db, shop_domain or "")
    except TenantNotFoundError as e:
        log.warning(f"Webhook for unknown shop {shop_domain}: {e}")
        raise HTTPException(status_code=404, detail=str(e))

    if not topic:
        log.info(f"Webhook without topic for {tenant.shop_domain}, ignoring")
        return {"message": "Webhook ignored"}

    applied = service.dispatch(topic, tenant, body)
    if applied is None:
        return {"message": "Webhook ignored"}

    return {"message": "Webhook processed"}


@router.post("/shopify")
async def receive_shopify_webhook(
    request: Request,
    x_shopify_hmac_sha256: Optional[str] = Header(None),
    x_shopify_topic: Optional[str] = Header(None),
    x_shopify_shop_domain: Optional[str] = Header(None),
    db: Session = Depends(get_db),
    service: WebhookService = Depends(get_webhook_service),
    settings: Settings = Depends(get_settings),
):
    """
    Receive a Shopify webhook delivery.

    401 on a bad signature, 404 for an unknown shop, 200 otherwise. Events
    that cannot be applied are logged and still acknowledged.
    """
    body = await request.body()
    return await run_in_threadpool(
        _process_webhook,
        body,
        x_shopify_hmac_sha256,
        x_shopify_topic,
        x_shopify_shop_domain,
        db,
        service,
        settings.shopify_webhook_secret,
    )
