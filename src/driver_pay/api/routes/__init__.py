"""API routes."""

from driver_pay.api.routes.assignments import router as assignments_router
from driver_pay.api.routes.health import router as health_router
from driver_pay.api.routes.legs import router as legs_router
from driver_pay.api.routes.loads import router as loads_router
from driver_pay.api.routes.payables import router as payables_router
from driver_pay.api.routes.profiles import router as profiles_router

__all__ = [
    "assignments_router",
    "health_router",
    "legs_router",
    "loads_router",
    "payables_router",
    "profiles_router",
]
