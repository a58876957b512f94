"""Admin ordering routes: order oversight, reconciliation and stock corrections."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from libs.auth.dependencies import require_admin
from libs.auth.models import AuthUser
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.ordering_service.models import OrderStatus
from services.ordering_service.schemas import (
    OrderEstimateUpdate,
    OrderResponse,
    OrderStatusUpdate,
    PaymentResultResponse,
    PaymentTransactionResponse,
    ProductStockResponse,
    StockAdjustment,
    TransactionResolve,
)
from services.ordering_service.services import inventory_ops, order_ops, payment_ops
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["admin-ordering"])
logger = get_logger(__name__)


# ============================================================================
# ORDERS
# ============================================================================


@router.get("/orders", response_model=list[OrderResponse])
async def list_orders(
    status: Optional[OrderStatus] = None,
    owner_id: Optional[str] = None,
    limit: Optional[int] = Query(None, ge=1, le=500),
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """List orders, optionally filtered by state and owner."""
    return await order_ops.list_orders(
        db, owner_id=owner_id, status=status, limit=limit
    )


@router.get("/orders/recent", response_model=list[OrderResponse])
async def list_recent_orders(
    days: Optional[int] = Query(None, ge=1, le=365),
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await order_ops.list_recent_orders(db, days)


@router.patch("/orders/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: uuid.UUID,
    payload: OrderStatusUpdate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    logger.info(
        "Admin %s moving order %s to %s",
        current_user.user_id,
        order_id,
        payload.status.value,
    )
    return await order_ops.transition_order(db, order_id, payload.status)


@router.patch("/orders/{order_id}/estimate", response_model=OrderResponse)
async def update_order_estimate(
    order_id: uuid.UUID,
    payload: OrderEstimateUpdate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await order_ops.update_estimate(db, order_id, payload.estimated_minutes)


# ============================================================================
# TRANSACTIONS
# ============================================================================


@router.post(
    "/transactions/{transaction_id}/resolve", response_model=PaymentResultResponse
)
async def resolve_transaction(
    transaction_id: uuid.UUID,
    payload: TransactionResolve,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Settle a transaction left processing after a processor timeout."""
    logger.info(
        "Admin %s resolving transaction %s (approved=%s)",
        current_user.user_id,
        transaction_id,
        payload.approved,
    )
    outcome = await payment_ops.resolve_transaction(
        db,
        transaction_id,
        approved=payload.approved,
        authorization_code=payload.authorization_code,
    )
    return PaymentResultResponse(
        transaction=PaymentTransactionResponse.model_validate(outcome.transaction),
        order=OrderResponse.model_validate(outcome.order),
        message=outcome.message,
    )


# ============================================================================
# INVENTORY
# ============================================================================


@router.patch("/products/{product_id}/stock", response_model=ProductStockResponse)
async def adjust_product_stock(
    product_id: uuid.UUID,
    payload: StockAdjustment,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    logger.info(
        "Admin %s adjusting stock of %s by %d",
        current_user.user_id,
        product_id,
        payload.delta,
    )
    return await inventory_ops.adjust_stock(db, product_id, payload.delta)
