from .health import router as health_router
from .devices import router as devices_router
from .readings import router as readings_router
from .providers import router as providers_router
from .webhooks import router as webhooks_router
from .users import router as users_router

__all__ = [
    "health_router",
    "devices_router",
    "readings_router",
    "providers_router",
    "webhooks_router",
    "users_router"
]
