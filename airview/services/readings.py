"""Reading ingestion and retention-clamped history queries."""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from airview.clock import now_ms
from airview.errors import NotFoundError, ValidationError
from airview.models.device import Device
from airview.models.reading import METRIC_FIELDS, Reading
from airview.providers.mappers import normalize_timestamp_ms
from airview.services.plans import resolve_plan, retention_start

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 500
EXPORT_LIMIT = 10_000


@dataclass
class ExportResult:
    readings: List[Reading]
    truncated: bool
    clamped: bool
    effective_start_ts: int
    end_ts: int


@dataclass
class BucketedPoint:
    ts: int
    count: int
    metrics: Dict[str, Optional[float]] = field(default_factory=dict)


def ingest(db: Session, device_id: int, ts: float, **metrics) -> int:
    """
    Store one sample for a device and refresh its last-seen state.

    ``ts`` may be epoch seconds or milliseconds. A sample already stored for
    the same device and timestamp is not duplicated; its id is returned.
    """
    unknown = set(metrics) - set(METRIC_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown metrics: {', '.join(sorted(unknown))}")

    normalized_ts = normalize_timestamp_ms(ts)
    device = db.get(Device, device_id)
    if not device:
        logger.warning(f"Ingest for unknown device {device_id}")
        raise NotFoundError("Device not found")

    existing = db.query(Reading).filter(
        Reading.device_id == device_id,
        Reading.ts == normalized_ts,
    ).first()
    if existing:
        return existing.id

    reading = Reading(device_id=device_id, device_name=device.name, ts=normalized_ts, **metrics)
    db.add(reading)

    device.last_reading_at = normalized_ts
    # A sample without battery must not clear the last known level
    if metrics.get("battery") is not None:
        device.last_battery = metrics["battery"]

    try:
        db.commit()
    except IntegrityError:
        # Lost a race with the webhook or poll path for the same sample
        db.rollback()
        existing = db.query(Reading).filter(
            Reading.device_id == device_id,
            Reading.ts == normalized_ts,
        ).first()
        if existing is None:
            raise
        return existing.id

    return reading.id


def _clamp_start(db: Session, device: Device, start_ts: Optional[int], now: int):
    """Return (effective_start, clamped) for the device owner's plan."""
    requested = start_ts if start_ts is not None else 0
    plan = resolve_plan(db, device.user_id, device.organization_id)
    earliest = retention_start(plan, now)
    if earliest is None or requested >= earliest:
        return requested, False
    return earliest, True


def latest(db: Session, device_id: int) -> Optional[Reading]:
    return (
        db.query(Reading)
        .filter(Reading.device_id == device_id)
        .order_by(Reading.ts.desc())
        .first()
    )


def history(
    db: Session,
    device_id: int,
    start_ts: Optional[int] = None,
    end_ts: Optional[int] = None,
    limit: Optional[int] = None,
    now: Optional[int] = None,
) -> List[Reading]:
    """Latest-first readings within the plan's retention window."""
    now = now if now is not None else now_ms()
    device = db.get(Device, device_id)
    if not device:
        raise NotFoundError("Device not found")

    start, _ = _clamp_start(db, device, start_ts, now)
    end = end_ts if end_ts is not None else now
    limit = limit if limit is not None else DEFAULT_HISTORY_LIMIT

    return (
        db.query(Reading)
        .filter(Reading.device_id == device_id, Reading.ts >= start, Reading.ts <= end)
        .order_by(Reading.ts.desc())
        .limit(limit)
        .all()
    )


def for_export(
    db: Session,
    user_id: int,
    device_id: int,
    start_ts: int,
    end_ts: int,
    organization_id: Optional[int] = None,
    now: Optional[int] = None,
) -> ExportResult:
    now = now if now is not None else now_ms()
    device = db.get(Device, device_id)
    owned = device is not None and (
        device.user_id == user_id
        or (organization_id is not None and device.organization_id == organization_id)
    )
    if not owned:
        raise NotFoundError("Device not found")

    start, clamped = _clamp_start(db, device, start_ts, now)
    rows = (
        db.query(Reading)
        .filter(Reading.device_id == device_id, Reading.ts >= start, Reading.ts <= end_ts)
        .order_by(Reading.ts.asc())
        .limit(EXPORT_LIMIT + 1)
        .all()
    )
    truncated = len(rows) > EXPORT_LIMIT
    return ExportResult(
        readings=rows[:EXPORT_LIMIT],
        truncated=truncated,
        clamped=clamped,
        effective_start_ts=start,
        end_ts=end_ts,
    )


def history_aggregated(
    db: Session,
    device_id: int,
    start_ts: int,
    end_ts: int,
    bucket_minutes: int,
    now: Optional[int] = None,
) -> List[BucketedPoint]:
    """
    Average every metric over fixed-width buckets.

    Each metric keeps its own count, so a metric missing from some readings
    in a bucket is averaged only over the readings that carried it; it is
    None only when no reading in the bucket had it.
    """
    if bucket_minutes is None or bucket_minutes <= 0:
        raise ValidationError("bucket_minutes must be greater than 0")
    if end_ts <= start_ts:
        raise ValidationError("end_ts must be after start_ts")

    now = now if now is not None else now_ms()
    device = db.get(Device, device_id)
    if not device:
        raise NotFoundError("Device not found")

    start, _ = _clamp_start(db, device, start_ts, now)
    rows = (
        db.query(Reading)
        .filter(Reading.device_id == device_id, Reading.ts >= start, Reading.ts <= end_ts)
        .order_by(Reading.ts.asc())
        .all()
    )

    width = int(bucket_minutes * 60 * 1000)
    buckets: Dict[int, dict] = {}
    for row in rows:
        bucket_ts = (row.ts // width) * width
        bucket = buckets.setdefault(bucket_ts, {
            "count": 0,
            "sums": dict.fromkeys(METRIC_FIELDS, 0.0),
            "counts": dict.fromkeys(METRIC_FIELDS, 0),
        })
        bucket["count"] += 1
        for name in METRIC_FIELDS:
            value = getattr(row, name)
            if value is not None:
                bucket["sums"][name] += value
                bucket["counts"][name] += 1

    points = []
    for bucket_ts in sorted(buckets):
        bucket = buckets[bucket_ts]
        metrics = {
            name: (bucket["sums"][name] / bucket["counts"][name] if bucket["counts"][name] else None)
            for name in METRIC_FIELDS
        }
        points.append(BucketedPoint(ts=bucket_ts, count=bucket["count"], metrics=metrics))
    return points
