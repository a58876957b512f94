"""Ordering service routers package."""

from services.ordering_service.routers.admin import router as admin_router
from services.ordering_service.routers.orders import router as orders_router
from services.ordering_service.routers.payment_methods import (
    router as payment_methods_router,
)
from services.ordering_service.routers.payments import router as payments_router

__all__ = [
    "admin_router",
    "orders_router",
    "payment_methods_router",
    "payments_router",
]
