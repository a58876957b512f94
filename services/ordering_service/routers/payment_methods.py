"""Saved payment method routes."""

import uuid

from fastapi import APIRouter, Depends, status
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.ordering_service.schemas import (
    ActionResult,
    SavedPaymentMethodCreate,
    SavedPaymentMethodResponse,
)
from services.ordering_service.services import payment_methods
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["ordering-payment-methods"])


@router.get("/payment-methods", response_model=list[SavedPaymentMethodResponse])
async def list_payment_methods(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await payment_methods.list_active_payment_methods(db, current_user.user_id)


@router.post(
    "/payment-methods",
    response_model=SavedPaymentMethodResponse,
    status_code=status.HTTP_201_CREATED,
)
async def save_payment_method(
    payload: SavedPaymentMethodCreate,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Save a card reference. Only the last 4 digits are stored."""
    return await payment_methods.save_payment_method(
        db, user_id=current_user.user_id, card=payload.card, alias=payload.alias
    )


@router.delete("/payment-methods/{method_id}", response_model=ActionResult)
async def delete_payment_method(
    method_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await payment_methods.deactivate_payment_method(
        db, user_id=current_user.user_id, method_id=method_id
    )
