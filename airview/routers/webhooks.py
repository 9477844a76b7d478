from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session
import logging

from airview.database import get_db
from airview.errors import NotFoundError, SecurityError, ValidationError
from airview.providers.mappers import map_qingping_reading
from airview.providers.webhooks import verify_signature
from airview.schemas.provider import QingpingWebhookBody
from airview.services.devices import canonical_device_id, get_by_provider_device_id
from airview.services.provider_configs import get_config
from airview.services.readings import ingest

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/webhooks", tags=["webhooks"])

@router.post("/qingping")
async def qingping_webhook_without_tenant():
    raise ValidationError("Missing tenant id")

@router.post("/qingping/{tenant_id}", response_class=PlainTextResponse)
async def qingping_webhook(tenant_id: str, body: QingpingWebhookBody, db: Session = Depends(get_db)):
    """Push notifications from Qingping; the signature is the only authentication"""
    try:
        user_id = int(tenant_id)
    except ValueError:
        raise ValidationError("Missing tenant id")

    config = get_config(db, user_id, "qingping")
    if not config or not config.app_secret:
        logger.warning(f"Webhook for user {user_id} without a stored secret")
        raise SecurityError("Webhook secret missing")

    signature = body.signature
    if not verify_signature(signature.timestamp, signature.token, signature.signature, config.app_secret):
        logger.warning(f"Rejected webhook with invalid signature for user {user_id}")
        raise SecurityError("Invalid signature")

    mac = canonical_device_id(body.payload.info.mac)
    device = get_by_provider_device_id(db, "qingping", mac)
    if not device or device.user_id != user_id:
        raise NotFoundError("Device not found")

    ingested = 0
    for sample in body.payload.data:
        reading = map_qingping_reading(sample)
        if reading is None:
            continue
        ingest(db, device.id, reading.ts, **reading.metrics())
        ingested += 1

    logger.info(f"Webhook ingested {ingested} readings for device {device.id}")
    return "ok"
