"""Saved payment methods. Only the last 4 digits and display metadata are stored."""

import uuid
from typing import Optional

from libs.common.config import get_settings
from libs.common.logging import get_logger
from services.ordering_service.errors import (
    DuplicateCard,
    InvalidCardData,
    PaymentMethodNotFound,
)
from services.ordering_service.models import SavedPaymentMethod
from services.ordering_service.schemas import ActionResult, CardDetails
from services.ordering_service.services.card_validation import validate_card
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)
settings = get_settings()


async def list_active_payment_methods(
    db: AsyncSession, user_id: str
) -> list[SavedPaymentMethod]:
    result = await db.execute(
        select(SavedPaymentMethod)
        .where(
            SavedPaymentMethod.user_id == user_id,
            SavedPaymentMethod.is_active.is_(True),
        )
        .order_by(SavedPaymentMethod.created_at.desc())
    )
    return list(result.scalars().all())


async def save_payment_method(
    db: AsyncSession,
    *,
    user_id: str,
    card: CardDetails,
    alias: Optional[str] = None,
) -> SavedPaymentMethod:
    """Validate and store a card reference for ``user_id``.

    The full number and CVV are discarded after validation.
    """
    check = validate_card(card)
    if not check.is_valid:
        raise InvalidCardData(f"Invalid card data: {check.reason}")

    existing = await db.execute(
        select(SavedPaymentMethod.id).where(
            SavedPaymentMethod.user_id == user_id,
            SavedPaymentMethod.last4 == check.last4,
            SavedPaymentMethod.is_active.is_(True),
        )
    )
    if existing.first() is not None:
        raise DuplicateCard()

    method = SavedPaymentMethod(
        user_id=user_id,
        alias=(alias or "").strip() or settings.DEFAULT_CARD_ALIAS,
        last4=check.last4,
        network=check.network,
        expiry_month=card.expiry_month.strip().zfill(2),
        expiry_year=card.expiry_year.strip(),
        cardholder_name=card.cardholder_name.strip(),
        is_active=True,
    )
    db.add(method)
    await db.commit()
    await db.refresh(method)

    logger.info(
        "Saved %s card ending %s for %s", check.network.value, check.last4, user_id
    )
    return method


async def deactivate_payment_method(
    db: AsyncSession, *, user_id: str, method_id: uuid.UUID
) -> ActionResult:
    """Deactivate one of the user's saved methods. Reports failure instead of raising."""
    result = await db.execute(
        select(SavedPaymentMethod).where(
            SavedPaymentMethod.id == method_id,
            SavedPaymentMethod.user_id == user_id,
            SavedPaymentMethod.is_active.is_(True),
        )
    )
    method = result.scalar_one_or_none()
    if not method:
        detail = PaymentMethodNotFound.default_detail
        logger.warning("Deactivation of payment method %s refused: %s", method_id, detail)
        return ActionResult(success=False, message=f"Could not remove payment method: {detail}")

    method.is_active = False
    await db.commit()

    logger.info("Deactivated payment method %s for %s", method_id, user_id)
    return ActionResult(success=True, message="Payment method removed")
