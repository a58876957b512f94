"""Shared helpers for ordering routers."""

import uuid

from libs.auth.models import AuthUser
from services.ordering_service.models import Order
from services.ordering_service.services.order_ops import ensure_order_access, get_order
from services.ordering_service.services.payment_ops import (
    PaymentDecider,
    default_decider,
)
from sqlalchemy.ext.asyncio import AsyncSession


def get_payment_decider() -> PaymentDecider:
    """Processor decision strategy; overridden in tests."""
    return default_decider()


async def load_owned_order(
    db: AsyncSession, order_id: uuid.UUID, current_user: AuthUser
) -> Order:
    """Fetch an order the caller owns (or may access as a privileged user)."""
    order = await get_order(db, order_id)
    ensure_order_access(order, current_user)
    return order
