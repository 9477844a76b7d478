from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from airview.database import get_db
from airview.providers import QingpingProvider, get_qingping_provider
from airview.schemas.device import (
    AddDeviceRequest,
    DashboardMetricsUpdate,
    DeleteDeviceResponse,
    DeviceResponse,
    DeviceStatusResponse,
    HiddenMetricsUpdate,
    RenameDeviceRequest,
    ReportIntervalUpdate,
)
from airview.services import devices as device_service
from airview.services.scheduler import TaskScheduler, get_task_scheduler

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/devices", tags=["devices"])

@router.get("/", response_model=List[DeviceResponse])
async def list_devices(user_id: int, organization_id: Optional[int] = None, db: Session = Depends(get_db)):
    """Devices owned by an account or organization"""
    return device_service.list_devices(db, user_id, organization_id)

@router.get("/{device_id}", response_model=DeviceResponse)
async def get_device(device_id: int, db: Session = Depends(get_db)):
    return device_service.get_device(db, device_id)

@router.get("/{device_id}/status", response_model=DeviceStatusResponse)
async def get_device_status(device_id: int, db: Session = Depends(get_db)):
    """Online/offline state derived from last reading age, battery and provider flag"""
    device = device_service.get_device(db, device_id)
    status = device_service.device_status(device)
    return DeviceStatusResponse(device_id=device.id, **vars(status))

@router.post("/", response_model=DeviceResponse, status_code=201)
async def add_device(
    request: AddDeviceRequest,
    db: Session = Depends(get_db),
    scheduler: TaskScheduler = Depends(get_task_scheduler),
):
    """Register a sensor by MAC address"""
    device_id = device_service.add_by_mac(
        db,
        user_id=request.user_id,
        mac_address=request.mac_address,
        provider=request.provider,
        name=request.name,
        organization_id=request.organization_id,
        scheduler=scheduler,
    )
    return device_service.get_device(db, device_id)

@router.put("/{device_id}/name", response_model=DeviceResponse)
async def rename_device(device_id: int, request: RenameDeviceRequest, db: Session = Depends(get_db)):
    return device_service.rename_device(db, device_id, request.name)

@router.put("/{device_id}/hidden-metrics", response_model=DeviceResponse)
async def update_hidden_metrics(device_id: int, request: HiddenMetricsUpdate, db: Session = Depends(get_db)):
    return device_service.update_hidden_metrics(db, device_id, request.hidden_metrics)

@router.put("/{device_id}/dashboard-metrics", response_model=DeviceResponse)
async def update_dashboard_metrics(device_id: int, request: DashboardMetricsUpdate, db: Session = Depends(get_db)):
    return device_service.update_dashboard_metrics(
        db, device_id, request.primary_metrics, request.secondary_metrics
    )

@router.put("/{device_id}/report-interval", response_model=DeviceResponse)
async def update_report_interval(
    device_id: int,
    request: ReportIntervalUpdate,
    db: Session = Depends(get_db),
    client: QingpingProvider = Depends(get_qingping_provider),
):
    """Push a new report interval to the sensor through the provider API"""
    return await device_service.update_report_interval(db, client, device_id, request.report_interval)

@router.delete("/{device_id}", response_model=DeleteDeviceResponse)
async def delete_device(device_id: int, db: Session = Depends(get_db)):
    """Delete a device with its readings, embed tokens and kiosk references"""
    result = device_service.delete_device(db, device_id)
    return DeleteDeviceResponse(**vars(result))
