from airview.errors import ValidationError
from .qingping import QingpingProvider, AccessToken

SUPPORTED_PROVIDERS = ("qingping",)
KNOWN_PROVIDERS = ("qingping", "purpleair", "iqair", "temtop")

def get_provider_client(provider: str) -> QingpingProvider:
    """Return a client for a provider; only Qingping is integrated so far"""
    if provider == "qingping":
        return QingpingProvider()
    raise ValidationError("Only Qingping is supported for now.")

def get_qingping_provider() -> QingpingProvider:
    """FastAPI dependency"""
    return QingpingProvider()

__all__ = [
    "QingpingProvider",
    "AccessToken",
    "SUPPORTED_PROVIDERS",
    "KNOWN_PROVIDERS",
    "get_provider_client",
    "get_qingping_provider"
]
