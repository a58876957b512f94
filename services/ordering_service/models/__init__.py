"""Ordering Service models package."""

from services.ordering_service.models.catalog import Product
from services.ordering_service.models.enums import (
    CANCELLABLE_ORDER_STATUSES,
    FINAL_ORDER_STATUSES,
    CardNetwork,
    DeliveryType,
    OrderStatus,
    PaymentMethod,
    TransactionStatus,
)
from services.ordering_service.models.order import CENT, Order, OrderItem
from services.ordering_service.models.payment import (
    PaymentTransaction,
    SavedPaymentMethod,
)

__all__ = [
    "CANCELLABLE_ORDER_STATUSES",
    "CENT",
    "CardNetwork",
    "DeliveryType",
    "FINAL_ORDER_STATUSES",
    "Order",
    "OrderItem",
    "OrderStatus",
    "PaymentMethod",
    "PaymentTransaction",
    "Product",
    "SavedPaymentMethod",
    "TransactionStatus",
]
