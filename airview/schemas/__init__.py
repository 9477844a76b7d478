from .device import (
    DeviceResponse,
    DeviceStatusResponse,
    AddDeviceRequest,
    RenameDeviceRequest,
    HiddenMetricsUpdate,
    DashboardMetricsUpdate,
    ReportIntervalUpdate,
    DeleteDeviceResponse,
)
from .reading import ReadingResponse, BucketedPointResponse, ExportResponse
from .provider import ConnectProviderRequest, SyncRequest, SyncResponse, QingpingWebhookBody
from .account import DeleteUserResponse

__all__ = [
    "DeviceResponse",
    "DeviceStatusResponse",
    "AddDeviceRequest",
    "RenameDeviceRequest",
    "HiddenMetricsUpdate",
    "DashboardMetricsUpdate",
    "ReportIntervalUpdate",
    "DeleteDeviceResponse",
    "ReadingResponse",
    "BucketedPointResponse",
    "ExportResponse",
    "ConnectProviderRequest",
    "SyncRequest",
    "SyncResponse",
    "QingpingWebhookBody",
    "DeleteUserResponse"
]
