from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from airview.database import get_db
from airview.schemas.reading import BucketedPointResponse, ExportResponse, ReadingResponse
from airview.services import readings as reading_service
from airview.services.devices import get_device

router = APIRouter(prefix="/api/v1/readings", tags=["readings"])

@router.get("/{device_id}/latest", response_model=Optional[ReadingResponse])
async def latest_reading(device_id: int, db: Session = Depends(get_db)):
    get_device(db, device_id)
    return reading_service.latest(db, device_id)

@router.get("/{device_id}/history", response_model=List[ReadingResponse])
async def reading_history(
    device_id: int,
    start_ts: Optional[int] = Query(None, description="Start (epoch ms), clamped to plan retention"),
    end_ts: Optional[int] = Query(None, description="End (epoch ms), defaults to now"),
    limit: int = Query(reading_service.DEFAULT_HISTORY_LIMIT, ge=1, le=reading_service.EXPORT_LIMIT),
    db: Session = Depends(get_db),
):
    """Latest-first readings"""
    return reading_service.history(db, device_id, start_ts, end_ts, limit)

@router.get("/{device_id}/aggregated", response_model=List[BucketedPointResponse])
async def reading_history_aggregated(
    device_id: int,
    start_ts: int,
    end_ts: int,
    bucket_minutes: int = Query(60, description="Bucket width in minutes"),
    db: Session = Depends(get_db),
):
    points = reading_service.history_aggregated(db, device_id, start_ts, end_ts, bucket_minutes)
    return [BucketedPointResponse(ts=p.ts, count=p.count, **p.metrics) for p in points]

@router.get("/{device_id}/export", response_model=ExportResponse)
async def export_readings(
    device_id: int,
    user_id: int,
    start_ts: int,
    end_ts: int,
    organization_id: Optional[int] = None,
    db: Session = Depends(get_db),
):
    """Oldest-first readings for export, capped and clamped"""
    result = reading_service.for_export(db, user_id, device_id, start_ts, end_ts, organization_id)
    return ExportResponse(
        device_id=device_id,
        effective_start_ts=result.effective_start_ts,
        end_ts=result.end_ts,
        truncated=result.truncated,
        clamped=result.clamped,
        readings=[ReadingResponse.model_validate(r) for r in result.readings],
    )
