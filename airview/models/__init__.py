from airview.database import Base
from .account import User, Organization
from .device import Device, DeletedDevice
from .reading import Reading, METRIC_FIELDS
from .provider_config import ProviderConfig
from .sharing import EmbedToken, KioskConfig
from .audit import AuditLog

__all__ = [
    "Base",
    "User",
    "Organization",
    "Device",
    "DeletedDevice",
    "Reading",
    "METRIC_FIELDS",
    "ProviderConfig",
    "EmbedToken",
    "KioskConfig",
    "AuditLog"
]
