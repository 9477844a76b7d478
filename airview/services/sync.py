"""
Provider synchronization: token upkeep, device reconciliation and reading
ingestion against the provider API.

Every device in a sync is processed on its own; one failing device is logged,
recorded in the result and skipped so the rest of the fleet still syncs.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from airview.clock import now_ms
from airview.errors import ApiError, AuthError, ValidationError
from airview.models.audit import AuditLog
from airview.models.provider_config import ProviderConfig
from airview.providers import SUPPORTED_PROVIDERS
from airview.providers.mappers import map_qingping_device, map_qingping_reading
from airview.services.devices import upsert_from_provider
from airview.services.provider_configs import (
    get_config,
    list_all_configs,
    save_config,
    update_last_sync,
    update_token,
)
from airview.services.readings import ingest

logger = logging.getLogger(__name__)

TOKEN_EXPIRY_MARGIN_MS = 5 * 60 * 1000
TOKEN_REFRESH_WINDOW_MS = 10 * 60 * 1000
NEW_DEVICE_SYNC_RETRY_MS = 30 * 1000
NEW_DEVICE_SYNC_MAX_ATTEMPTS = 5


@dataclass
class SyncResult:
    user_id: int
    provider: str
    devices_seen: int = 0
    devices_skipped: int = 0
    readings_ingested: int = 0
    failures: List[str] = field(default_factory=list)


async def _refresh_token(db: Session, client, config: ProviderConfig) -> str:
    if not config.app_key or not config.app_secret:
        raise AuthError("Token expired and no credentials available to refresh")
    token = await client.get_access_token(config.app_key, config.app_secret)
    update_token(db, config, token.access_token, token.expires_at)
    logger.info(f"Refreshed {config.provider} token for user {config.user_id}")
    return token.access_token


async def _valid_access_token(db: Session, client, config: ProviderConfig, now: int) -> str:
    if config.token_expires_at and config.token_expires_at > now + TOKEN_EXPIRY_MARGIN_MS:
        return config.access_token
    return await _refresh_token(db, client, config)


async def _list_devices(db: Session, client, config: ProviderConfig, access_token: str) -> List[Dict[str, Any]]:
    try:
        return await client.list_devices(access_token)
    except ApiError as e:
        if e.upstream_status != 401 or not config.app_key or not config.app_secret:
            raise
        logger.info(f"Got 401 listing devices for user {config.user_id}, refreshing token and retrying")
        access_token = await _refresh_token(db, client, config)
        return await client.list_devices(access_token)


def _sync_device(db: Session, config: ProviderConfig, raw: Dict[str, Any]) -> Optional[int]:
    """Upsert one provider device and ingest its embedded sample.

    Returns the number of readings ingested, or None when the device is
    tombstoned for this account.
    """
    normalized = map_qingping_device(raw)
    if not normalized.provider_device_id:
        raise ValidationError("Provider device payload has no MAC address")

    device_id = upsert_from_provider(
        db,
        user_id=config.user_id,
        provider=config.provider,
        provider_device_id=normalized.provider_device_id,
        name=normalized.name,
        model=normalized.model,
        timezone=normalized.timezone,
        offline=normalized.offline,
        organization_id=config.organization_id,
    )
    if device_id is None:
        return None

    reading = map_qingping_reading(raw.get("data"))
    if reading is None:
        logger.debug(f"No reading data for device {normalized.provider_device_id}")
        return 0

    ingest(db, device_id, reading.ts, **reading.metrics())
    return 1


async def sync_devices_for_user(
    db: Session,
    client,
    user_id: int,
    provider: str,
    now: Optional[int] = None,
) -> SyncResult:
    result = SyncResult(user_id=user_id, provider=provider)
    if provider not in SUPPORTED_PROVIDERS:
        return result

    config = get_config(db, user_id, provider)
    if not config or not config.access_token:
        logger.info(f"No {provider} credentials for user {user_id}, nothing to sync")
        return result

    now = now if now is not None else now_ms()
    access_token = await _valid_access_token(db, client, config, now)
    devices = await _list_devices(db, client, config, access_token)
    logger.info(f"Fetched {len(devices)} {provider} devices for user {user_id}")

    for raw in devices:
        result.devices_seen += 1
        try:
            ingested = _sync_device(db, config, raw)
        except Exception as e:
            db.rollback()
            mac = (raw.get("info") or {}).get("mac", "?")
            logger.error(f"Error syncing device {mac} for user {user_id}: {str(e)}")
            result.failures.append(f"{mac}: {str(e)}")
            continue

        if ingested is None:
            result.devices_skipped += 1
        else:
            result.readings_ingested += ingested

    update_last_sync(db, config, now)
    if result.failures:
        logger.warning(f"Sync for user {user_id} finished with {len(result.failures)} failed devices")
    return result


async def connect_and_sync(
    db: Session,
    client,
    user_id: int,
    provider: str,
    app_key: str,
    app_secret: str,
    webhook_secret: Optional[str] = None,
    organization_id: Optional[int] = None,
) -> SyncResult:
    """Link an account to a provider and run the first full sync."""
    if provider not in SUPPORTED_PROVIDERS:
        raise ValidationError("Only Qingping is supported for now.")

    token = await client.get_access_token(app_key, app_secret)
    save_config(
        db,
        user_id=user_id,
        provider=provider,
        access_token=token.access_token,
        token_expires_at=token.expires_at,
        app_key=app_key,
        app_secret=app_secret,
        webhook_secret=webhook_secret,
        organization_id=organization_id,
    )
    db.add(AuditLog(
        action="provider_connected",
        details={"user_id": user_id, "provider": provider},
        created_at=now_ms(),
    ))
    db.commit()

    return await sync_devices_for_user(db, client, user_id, provider)


async def refresh_expiring_tokens(db: Session, client, now: Optional[int] = None) -> int:
    """Re-authenticate every config whose token expires within 10 minutes."""
    now = now if now is not None else now_ms()
    refreshed = 0

    for config in list_all_configs(db):
        if config.provider not in SUPPORTED_PROVIDERS:
            continue
        if not config.app_key or not config.app_secret:
            continue
        if config.token_expires_at > now + TOKEN_REFRESH_WINDOW_MS:
            continue

        try:
            await _refresh_token(db, client, config)
            refreshed += 1
        except Exception as e:
            db.rollback()
            logger.error(f"Error refreshing {config.provider} token for user {config.user_id}: {str(e)}")

    return refreshed


async def poll_all_readings(db: Session, client, now: Optional[int] = None) -> int:
    """Fallback poll alongside webhook push; returns readings ingested."""
    total = 0
    for config in list_all_configs(db):
        if config.provider not in SUPPORTED_PROVIDERS:
            continue
        try:
            result = await sync_devices_for_user(db, client, config.user_id, config.provider, now=now)
        except Exception as e:
            db.rollback()
            logger.error(f"Error polling {config.provider} readings for user {config.user_id}: {str(e)}")
            continue
        total += result.readings_ingested

    return total


async def sync_new_device(
    db: Session,
    client,
    user_id: int,
    provider: str,
    attempt: int = 0,
    scheduler=None,
) -> Optional[SyncResult]:
    """
    Backfill right after a device is added. When the account has no
    credentials yet (connect still in flight) retry shortly instead.
    """
    config = get_config(db, user_id, provider)
    if config and config.access_token:
        return await sync_devices_for_user(db, client, user_id, provider)

    next_attempt = attempt + 1
    if scheduler is not None and next_attempt < NEW_DEVICE_SYNC_MAX_ATTEMPTS:
        from airview.services.jobs import sync_new_device_job
        scheduler.run_after(
            NEW_DEVICE_SYNC_RETRY_MS,
            sync_new_device_job,
            user_id=user_id,
            provider=provider,
            attempt=next_attempt,
        )
        logger.info(f"No {provider} credentials yet for user {user_id}, retry {next_attempt} scheduled")
    else:
        logger.warning(f"Giving up initial sync for user {user_id} after {next_attempt} attempts")
    return None
