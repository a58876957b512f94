"""Member order routes: create, inspect, edit, cancel, invoice and pay."""

import uuid

from fastapi import APIRouter, Depends, status
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.ordering_service.routers._helpers import (
    get_payment_decider,
    load_owned_order,
)
from services.ordering_service.schemas import (
    ActionResult,
    InvoiceResponse,
    OrderCreate,
    OrderItemsUpdate,
    OrderResponse,
    PaymentRequest,
    PaymentResultResponse,
    PaymentTransactionResponse,
)
from services.ordering_service.services import order_ops, payment_ops
from services.ordering_service.services.payment_ops import PaymentDecider
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["ordering"])


# ============================================================================
# ORDERS
# ============================================================================


@router.post(
    "/orders", response_model=OrderResponse, status_code=status.HTTP_201_CREATED
)
async def create_order(
    payload: OrderCreate,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Create a pending order for the current user."""
    return await order_ops.create_order(
        db,
        owner_id=current_user.user_id,
        items=payload.items,
        delivery_type=payload.delivery_type,
        payment_method=payload.payment_method,
        delivery_address=payload.delivery_address,
        payment_metadata=payload.payment_metadata,
        notes=payload.notes,
        estimated_minutes=payload.estimated_minutes,
    )


@router.get("/orders/me", response_model=list[OrderResponse])
async def list_my_orders(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """List the current user's orders, newest first."""
    return await order_ops.list_orders(db, owner_id=current_user.user_id)


@router.get("/orders/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await load_owned_order(db, order_id, current_user)


@router.patch("/orders/{order_id}/items", response_model=OrderResponse)
async def update_order_items(
    order_id: uuid.UUID,
    payload: OrderItemsUpdate,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Replace the items of a pending order."""
    await load_owned_order(db, order_id, current_user)
    return await order_ops.update_order_items(db, order_id, payload.items)


@router.post("/orders/{order_id}/cancel", response_model=ActionResult)
async def cancel_order(
    order_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Cancel an order. Failure is reported in the body, not as an error status."""
    await load_owned_order(db, order_id, current_user)
    return await order_ops.cancel_order(db, order_id)


@router.post(
    "/orders/{order_id}/invoice",
    response_model=InvoiceResponse,
    status_code=status.HTTP_201_CREATED,
)
async def assign_invoice(
    order_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    await load_owned_order(db, order_id, current_user)
    number = await order_ops.assign_invoice(db, order_id)
    return InvoiceResponse(order_id=order_id, invoice_number=number)


# ============================================================================
# PAYMENTS
# ============================================================================


@router.get(
    "/orders/{order_id}/transactions",
    response_model=list[PaymentTransactionResponse],
)
async def list_order_transactions(
    order_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    await load_owned_order(db, order_id, current_user)
    return await payment_ops.list_order_transactions(db, order_id)


@router.post("/orders/{order_id}/payments", response_model=PaymentResultResponse)
async def pay_order(
    order_id: uuid.UUID,
    payload: PaymentRequest,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
    decider: PaymentDecider = Depends(get_payment_decider),
):
    """Submit one payment attempt. A declined payment is a 200 with a rejected transaction."""
    await load_owned_order(db, order_id, current_user)
    outcome = await payment_ops.process_payment(
        db,
        order_id=order_id,
        method=payload.method,
        card=payload.card,
        decider=decider,
    )
    return PaymentResultResponse(
        transaction=PaymentTransactionResponse.model_validate(outcome.transaction),
        order=OrderResponse.model_validate(outcome.order),
        message=outcome.message,
    )
