# routes/__init__.py

from .auth import router as auth_router
from .admin import router as admin_router
from .field_agent import router as field_agent_router
from .procurement import router as procurement_router
from .warehouse import router as warehouse_router
from .transport_coordinator import router as transport_coordinator_router
from .transport_driver import router as transport_driver_router
from .notifications import router as notifications_router

__all__ = [
    'auth_router',
    'admin_router',
    'field_agent_router',
    'procurement_router',
    'warehouse_router',
    'transport_coordinator_router',
    'transport_driver_router',
    'notifications_router',
]
