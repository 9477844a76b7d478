"""
Plan-based retention of readings.

The daily entry point only fans out one job per device; each job deletes a
bounded batch and reschedules itself while full batches keep coming back.
A lost continuation is picked up again by the next daily run.
"""
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from airview.clock import now_ms
from airview.models.account import Organization, User
from airview.models.device import Device
from airview.models.reading import Reading
from airview.services.plans import DEFAULT_PLAN, retention_start

logger = logging.getLogger(__name__)

BATCH_SIZE = 500


def cleanup_expired_readings(db: Session, scheduler, now: Optional[int] = None) -> int:
    """Schedule per-device cleanup for every tenant with finite retention."""
    from airview.services.jobs import cleanup_device_readings_job

    now = now if now is not None else now_ms()
    scheduled = 0

    for org in db.query(Organization).order_by(Organization.id).all():
        cutoff_ts = retention_start(org.plan, now)
        if cutoff_ts is None:
            continue

        device_ids = [
            device_id for (device_id,) in
            db.query(Device.id).filter(Device.organization_id == org.id).all()
        ]
        for device_id in device_ids:
            scheduler.run_after(0, cleanup_device_readings_job, device_id=device_id, cutoff_ts=cutoff_ts)
            scheduled += 1

    # Pre-migration devices that were never attached to an organization
    for user in db.query(User).order_by(User.id).all():
        cutoff_ts = retention_start(user.plan or DEFAULT_PLAN, now)
        if cutoff_ts is None:
            continue

        device_ids = [
            device_id for (device_id,) in
            db.query(Device.id).filter(
                Device.user_id == user.id,
                Device.organization_id.is_(None),
            ).all()
        ]
        for device_id in device_ids:
            scheduler.run_after(0, cleanup_device_readings_job, device_id=device_id, cutoff_ts=cutoff_ts)
            scheduled += 1

    # Devices still pointing at a deleted organization fall back to the owner's plan
    stranded = (
        db.query(Device.id, Device.user_id)
        .filter(
            Device.organization_id.isnot(None),
            ~Device.organization_id.in_(select(Organization.id)),
        )
        .order_by(Device.id)
        .all()
    )
    for device_id, user_id in stranded:
        user = db.get(User, user_id)
        cutoff_ts = retention_start(user.plan if user and user.plan else DEFAULT_PLAN, now)
        if cutoff_ts is None:
            continue
        scheduler.run_after(0, cleanup_device_readings_job, device_id=device_id, cutoff_ts=cutoff_ts)
        scheduled += 1

    logger.info(f"Scheduled retention cleanup for {scheduled} devices")
    return scheduled


def cleanup_device_readings(db: Session, device_id: int, cutoff_ts: int, scheduler=None) -> int:
    """Delete up to BATCH_SIZE of the oldest readings older than cutoff_ts."""
    expired_ids = [
        reading_id for (reading_id,) in
        db.query(Reading.id)
        .filter(Reading.device_id == device_id, Reading.ts < cutoff_ts)
        .order_by(Reading.ts.asc())
        .limit(BATCH_SIZE)
        .all()
    ]
    if not expired_ids:
        return 0

    db.query(Reading).filter(Reading.id.in_(expired_ids)).delete(synchronize_session=False)
    db.commit()

    if len(expired_ids) >= BATCH_SIZE and scheduler is not None:
        from airview.services.jobs import cleanup_device_readings_job
        scheduler.run_after(0, cleanup_device_readings_job, device_id=device_id, cutoff_ts=cutoff_ts)

    logger.debug(f"Deleted {len(expired_ids)} expired readings for device {device_id}")
    return len(expired_ids)
