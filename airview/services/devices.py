"""
Device registry: identity, ownership transfer, soft-deletion tombstones and
orphan cleanup.

``(provider, provider_device_id)`` is unique at the database level, so every
insert here is a check-then-write that falls back to the row that won when a
concurrent request claimed the same sensor first.
"""
import logging
import re
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from airview.clock import now_ms
from airview.errors import ConflictError, NotFoundError, PlanLimitError, ValidationError
from airview.models.account import User
from airview.models.audit import AuditLog
from airview.models.device import Device, DeletedDevice
from airview.models.reading import Reading
from airview.models.sharing import EmbedToken, KioskConfig
from airview.providers import KNOWN_PROVIDERS
from airview.services.plans import get_plan_limits, is_valid_report_interval, resolve_plan

logger = logging.getLogger(__name__)

MAC_SEPARATORS = re.compile(r"[\s:\-._]")
MAC_PATTERN = re.compile(r"^[0-9A-F]{12}$")
STALE_AFTER_MS = 30 * 60 * 1000
MAX_PRIMARY_METRICS = 2
MAX_SECONDARY_METRICS = 6


@dataclass
class DeleteDeviceResult:
    device_id: int
    readings: int = 0
    embed_tokens: int = 0
    kiosk_configs: int = 0


@dataclass
class DeviceStatus:
    is_online: bool
    is_stale: bool
    is_battery_empty: bool
    is_provider_offline: bool
    offline_reason: Optional[str]


def canonical_device_id(value: str) -> str:
    """Strip separators and uppercase without validating the length."""
    return MAC_SEPARATORS.sub("", value or "").upper()


def normalize_mac(mac_address: str) -> str:
    mac = canonical_device_id(mac_address)
    if not MAC_PATTERN.match(mac):
        raise ValidationError(
            "Invalid MAC address. Expected 12 hexadecimal characters, e.g. CC:B5:D1:32:36:8B."
        )
    return mac


def get_device(db: Session, device_id: int) -> Device:
    device = db.get(Device, device_id)
    if not device:
        raise NotFoundError("Device not found")
    return device


def get_by_provider_device_id(db: Session, provider: str, provider_device_id: str) -> Optional[Device]:
    return db.query(Device).filter(
        Device.provider == provider,
        Device.provider_device_id == provider_device_id,
    ).first()


def list_devices(db: Session, user_id: int, organization_id: Optional[int] = None) -> List[Device]:
    query = db.query(Device)
    if organization_id is not None:
        query = query.filter(Device.organization_id == organization_id)
    else:
        query = query.filter(Device.user_id == user_id)
    return query.order_by(Device.created_at.desc()).all()


def is_tombstoned(db: Session, user_id: int, provider: str, provider_device_id: str) -> bool:
    return db.query(DeletedDevice).filter(
        DeletedDevice.user_id == user_id,
        DeletedDevice.provider == provider,
        DeletedDevice.provider_device_id == provider_device_id,
    ).first() is not None


def _count_owned(db: Session, user_id: int, organization_id: Optional[int]) -> int:
    query = db.query(Device)
    if organization_id is not None:
        query = query.filter(Device.organization_id == organization_id)
    else:
        query = query.filter(Device.user_id == user_id)
    return query.count()


def _is_same_owner(device: Device, user_id: int, organization_id: Optional[int]) -> bool:
    if device.user_id == user_id:
        return True
    return organization_id is not None and device.organization_id == organization_id


def _delete_readings(db: Session, device_id: int) -> int:
    return db.query(Reading).filter(Reading.device_id == device_id).delete(synchronize_session=False)


def upsert_from_provider(
    db: Session,
    user_id: int,
    provider: str,
    provider_device_id: str,
    name: str,
    model: Optional[str] = None,
    timezone: Optional[str] = None,
    offline: Optional[bool] = None,
    organization_id: Optional[int] = None,
    now: Optional[int] = None,
) -> Optional[int]:
    """
    Reconcile one provider-reported device. Returns the device id, or None
    when the owner deleted this sensor and it must not be re-created.
    """
    provider_device_id = canonical_device_id(provider_device_id)
    existing = get_by_provider_device_id(db, provider, provider_device_id)

    if existing:
        if not existing.name_overridden and name:
            existing.name = name
        if model is not None:
            existing.model = model
        if timezone is not None:
            existing.timezone = timezone
        if offline is not None:
            existing.provider_offline = offline
        db.commit()
        return existing.id

    if is_tombstoned(db, user_id, provider, provider_device_id):
        logger.info(f"Skipping deleted device {provider}:{provider_device_id} for user {user_id}")
        return None

    plan = resolve_plan(db, user_id, organization_id)
    max_devices = get_plan_limits(plan).max_devices
    if _count_owned(db, user_id, organization_id) >= max_devices:
        raise PlanLimitError(
            f"Device limit ({max_devices}) reached on {plan} plan. "
            f"Skipping device {provider_device_id}."
        )

    device = Device(
        user_id=user_id,
        organization_id=organization_id,
        provider=provider,
        provider_device_id=provider_device_id,
        name=name or provider_device_id,
        model=model,
        timezone=timezone,
        provider_offline=offline,
        report_interval=3600,
        created_at=now if now is not None else now_ms(),
    )
    db.add(device)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        winner = get_by_provider_device_id(db, provider, provider_device_id)
        if winner is None:
            raise
        return winner.id

    logger.info(f"Created device {device.id} ({provider}:{provider_device_id}) from provider sync")
    return device.id


def add_by_mac(
    db: Session,
    user_id: int,
    mac_address: str,
    provider: str,
    name: Optional[str] = None,
    organization_id: Optional[int] = None,
    scheduler=None,
    now: Optional[int] = None,
) -> int:
    """
    Register a sensor by MAC for an account. Idempotent for the same owner;
    transfers the device when the previous owner is the same person under a
    new account; cleans up devices whose owner account no longer exists.
    """
    if provider not in KNOWN_PROVIDERS:
        raise ValidationError(f"Unknown provider: {provider}")
    mac = normalize_mac(mac_address)
    name = name.strip() if name else None
    now = now if now is not None else now_ms()

    db.query(DeletedDevice).filter(
        DeletedDevice.user_id == user_id,
        DeletedDevice.provider == provider,
        DeletedDevice.provider_device_id == mac,
    ).delete(synchronize_session=False)

    existing = get_by_provider_device_id(db, provider, mac)
    if existing:
        if _is_same_owner(existing, user_id, organization_id):
            if name:
                existing.name = name
                existing.name_overridden = True
            if organization_id is not None:
                existing.organization_id = organization_id
            db.commit()
            return existing.id

        previous_owner = db.get(User, existing.user_id)
        current_user = db.get(User, user_id)

        if previous_owner and current_user:
            if previous_owner.email.strip().lower() == current_user.email.strip().lower():
                existing.user_id = user_id
                existing.organization_id = organization_id
                if name:
                    existing.name = name
                    existing.name_overridden = True
                db.commit()
                logger.info(
                    f"Transferred device {existing.id} from user {previous_owner.id} to user {user_id}"
                )
                return existing.id
            db.rollback()
            raise ConflictError("This device is already registered to another account")

        if previous_owner and not current_user:
            db.rollback()
            raise NotFoundError("Current user not found")

        # Owner account is gone: drop the orphaned device and its history
        removed = _delete_readings(db, existing.id)
        db.delete(existing)
        db.flush()
        logger.info(f"Removed orphaned device {existing.id} ({mac}) and {removed} readings")

    plan = resolve_plan(db, user_id, organization_id)
    max_devices = get_plan_limits(plan).max_devices
    if _count_owned(db, user_id, organization_id) >= max_devices:
        db.rollback()
        plural = "" if max_devices == 1 else "s"
        raise PlanLimitError(
            f"You've reached the maximum of {max_devices} sensor{plural} on your {plan} plan. "
            f"Upgrade to add more."
        )

    device = Device(
        user_id=user_id,
        organization_id=organization_id,
        provider=provider,
        provider_device_id=mac,
        name=name or f"Sensor {mac[-4:]}",
        name_overridden=bool(name),
        report_interval=3600,
        created_at=now,
    )
    db.add(device)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        winner = get_by_provider_device_id(db, provider, mac)
        if winner and _is_same_owner(winner, user_id, organization_id):
            return winner.id
        raise ConflictError("This device is already registered to another account")

    logger.info(f"Added device {device.id} ({provider}:{mac}) for user {user_id}")

    if scheduler is not None:
        from airview.services.jobs import sync_new_device_job
        scheduler.run_after(0, sync_new_device_job, user_id=user_id, provider=provider, attempt=0)

    return device.id


def delete_device(db: Session, device_id: int, now: Optional[int] = None) -> DeleteDeviceResult:
    device = get_device(db, device_id)
    now = now if now is not None else now_ms()

    # Tombstone first so a sync running meanwhile cannot re-create the device
    if not is_tombstoned(db, device.user_id, device.provider, device.provider_device_id):
        db.add(DeletedDevice(
            user_id=device.user_id,
            organization_id=device.organization_id,
            provider=device.provider,
            provider_device_id=device.provider_device_id,
            deleted_at=now,
        ))
        db.commit()

    result = DeleteDeviceResult(device_id=device_id)

    try:
        result.readings = _delete_readings(db, device_id)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to delete readings for device {device_id}: {str(e)}")

    try:
        result.embed_tokens = db.query(EmbedToken).filter(
            EmbedToken.device_id == device_id
        ).delete(synchronize_session=False)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to delete embed tokens for device {device_id}: {str(e)}")

    try:
        kiosk_query = db.query(KioskConfig)
        if device.organization_id is not None:
            kiosk_query = kiosk_query.filter(KioskConfig.organization_id == device.organization_id)
        else:
            kiosk_query = kiosk_query.filter(KioskConfig.user_id == device.user_id)
        for config in kiosk_query.all():
            device_ids = config.device_ids or []
            if device_id not in device_ids:
                continue
            config.device_ids = [d for d in device_ids if d != device_id]
            result.kiosk_configs += 1
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        result.kiosk_configs = 0
        logger.error(f"Failed to update kiosk configs for device {device_id}: {str(e)}")

    db.add(AuditLog(
        action="device_deleted",
        details={
            "device_id": device_id,
            "provider": device.provider,
            "provider_device_id": device.provider_device_id,
            "readings": result.readings,
            "embed_tokens": result.embed_tokens,
            "kiosk_configs": result.kiosk_configs,
        },
        created_at=now,
    ))
    db.delete(device)
    db.commit()

    logger.info(
        f"Deleted device {device_id}: {result.readings} readings, "
        f"{result.embed_tokens} embed tokens, {result.kiosk_configs} kiosk configs"
    )
    return result


def cleanup_orphaned_readings(db: Session) -> int:
    """Delete readings whose device row no longer exists."""
    deleted = db.query(Reading).filter(
        ~Reading.device_id.in_(select(Device.id))
    ).delete(synchronize_session=False)
    db.commit()
    if deleted:
        logger.info(f"Removed {deleted} orphaned readings")
    return deleted


def rename_device(db: Session, device_id: int, name: str) -> Device:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Device name cannot be empty.")
    device = get_device(db, device_id)
    device.name = name
    device.name_overridden = True
    db.commit()
    return device


def update_hidden_metrics(db: Session, device_id: int, hidden_metrics: List[str]) -> Device:
    device = get_device(db, device_id)
    device.hidden_metrics = list(hidden_metrics)
    db.commit()
    return device


def update_dashboard_metrics(
    db: Session,
    device_id: int,
    primary_metrics: List[str],
    secondary_metrics: List[str],
) -> Device:
    if len(primary_metrics) == 0:
        raise ValidationError("At least one primary metric must be selected.")
    if len(primary_metrics) > MAX_PRIMARY_METRICS:
        raise ValidationError(f"You can select up to {MAX_PRIMARY_METRICS} primary metrics.")
    if len(secondary_metrics) > MAX_SECONDARY_METRICS:
        raise ValidationError(f"You can select up to {MAX_SECONDARY_METRICS} secondary metrics.")

    device = get_device(db, device_id)
    device.primary_metrics = list(primary_metrics)
    device.secondary_metrics = list(secondary_metrics)
    db.commit()
    return device


async def update_report_interval(
    db: Session,
    client,
    device_id: int,
    report_interval: int,
    now: Optional[int] = None,
) -> Device:
    """Push a new report interval to the provider and record the change."""
    from airview.services.provider_configs import get_config

    device = get_device(db, device_id)
    plan = resolve_plan(db, device.user_id, device.organization_id)
    limits = get_plan_limits(plan)
    if not is_valid_report_interval(plan, report_interval):
        raise ValidationError(
            f"Report interval must be between {limits.min_report_interval} and "
            f"{limits.max_report_interval} seconds on the {plan} plan."
        )

    config = get_config(db, device.user_id, device.provider)
    if not config or not config.access_token:
        raise NotFoundError(f"No {device.provider} connection found for this device.")

    await client.update_device_settings(
        config.access_token,
        [device.provider_device_id],
        report_interval,
        report_interval,
    )

    now = now if now is not None else now_ms()
    previous_interval = device.report_interval
    device.report_interval = report_interval
    device.interval_change_at = now
    db.add(AuditLog(
        action="report_interval_changed",
        details={
            "device_id": device.id,
            "previous_interval": previous_interval,
            "new_interval": report_interval,
        },
        created_at=now,
    ))
    db.commit()

    logger.info(f"Report interval for device {device.id} changed {previous_interval}s -> {report_interval}s")
    return device


def device_status(device: Device, now: Optional[int] = None, stale_after_ms: int = STALE_AFTER_MS) -> DeviceStatus:
    now = now if now is not None else now_ms()
    has_reading = device.last_reading_at is not None
    is_stale = not has_reading or now - device.last_reading_at > stale_after_ms
    is_battery_empty = device.last_battery == 0
    is_provider_offline = device.provider_offline is True
    is_online = not is_battery_empty and not is_provider_offline and not is_stale

    offline_reason = None
    if not is_online:
        if is_battery_empty:
            offline_reason = "battery"
        elif is_provider_offline:
            offline_reason = "provider"
        elif is_stale:
            offline_reason = "stale"
        else:
            offline_reason = "unknown"

    return DeviceStatus(
        is_online=is_online,
        is_stale=is_stale,
        is_battery_empty=is_battery_empty,
        is_provider_offline=is_provider_offline,
        offline_reason=offline_reason,
    )
