"""API routers."""

from app.routers.admin_orders import router as admin_orders_router
from app.routers.orders import router as orders_router

__all__ = [
    "admin_orders_router",
    "orders_router",
]
