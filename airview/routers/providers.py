from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
import logging

from airview.database import get_db
from airview.errors import ValidationError
from airview.providers import SUPPORTED_PROVIDERS, QingpingProvider, get_qingping_provider
from airview.schemas.provider import ConnectProviderRequest, SyncRequest, SyncResponse
from airview.services.sync import connect_and_sync, sync_devices_for_user

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/providers", tags=["providers"])

@router.post("/connect", response_model=SyncResponse)
async def connect_provider(
    request: ConnectProviderRequest,
    db: Session = Depends(get_db),
    client: QingpingProvider = Depends(get_qingping_provider),
):
    """Store provider credentials and run the first device sync"""
    result = await connect_and_sync(
        db,
        client,
        user_id=request.user_id,
        provider=request.provider,
        app_key=request.app_key,
        app_secret=request.app_secret,
        webhook_secret=request.webhook_secret,
        organization_id=request.organization_id,
    )
    return SyncResponse(**vars(result))

@router.post("/{provider}/sync", response_model=SyncResponse)
async def sync_provider(
    provider: str,
    request: SyncRequest,
    db: Session = Depends(get_db),
    client: QingpingProvider = Depends(get_qingping_provider),
):
    """On-demand device sync"""
    if provider not in SUPPORTED_PROVIDERS:
        raise ValidationError("Only Qingping is supported for now.")
    result = await sync_devices_for_user(db, client, request.user_id, provider)
    return SyncResponse(**vars(result))
