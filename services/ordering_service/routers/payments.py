"""Member transaction history routes."""

import uuid

from fastapi import APIRouter, Depends
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.ordering_service.errors import TransactionNotFound
from services.ordering_service.schemas import PaymentTransactionResponse
from services.ordering_service.services import payment_ops
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["ordering-payments"])


@router.get(
    "/payments/transactions/me", response_model=list[PaymentTransactionResponse]
)
async def list_my_transactions(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await payment_ops.list_user_transactions(db, current_user.user_id)


@router.get(
    "/payments/transactions/{transaction_id}",
    response_model=PaymentTransactionResponse,
)
async def get_transaction(
    transaction_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    transaction = await payment_ops.get_transaction(db, transaction_id)
    # Hide other users' transactions instead of confirming they exist
    if transaction.user_id != current_user.user_id and not current_user.is_privileged:
        raise TransactionNotFound()
    return transaction
