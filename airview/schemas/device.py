from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List

class DeviceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    organization_id: Optional[int] = None
    room_id: Optional[int] = None
    provider: str
    provider_device_id: str
    name: str
    model: Optional[str] = None
    timezone: Optional[str] = None
    last_reading_at: Optional[int] = None
    last_battery: Optional[float] = None
    provider_offline: Optional[bool] = None
    hidden_metrics: Optional[List[str]] = None
    primary_metrics: Optional[List[str]] = None
    secondary_metrics: Optional[List[str]] = None
    report_interval: Optional[int] = None
    created_at: int

class DeviceStatusResponse(BaseModel):
    device_id: int
    is_online: bool
    is_stale: bool
    is_battery_empty: bool
    is_provider_offline: bool
    offline_reason: Optional[str] = None

class AddDeviceRequest(BaseModel):
    user_id: int
    organization_id: Optional[int] = None
    mac_address: str
    provider: str = "qingping"
    name: Optional[str] = None

class RenameDeviceRequest(BaseModel):
    name: str = Field(..., min_length=1)

class HiddenMetricsUpdate(BaseModel):
    hidden_metrics: List[str]

class DashboardMetricsUpdate(BaseModel):
    primary_metrics: List[str]
    secondary_metrics: List[str] = []

class ReportIntervalUpdate(BaseModel):
    report_interval: int = Field(..., gt=0)

class DeleteDeviceResponse(BaseModel):
    device_id: int
    readings: int
    embed_tokens: int
    kiosk_configs: int
