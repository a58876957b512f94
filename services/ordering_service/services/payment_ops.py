"""Payment processing: resolve one payment attempt against one pending order.

Flow for ``process_payment``:

1. Claim the order with a conditional UPDATE (pending and unclaimed) and
   insert the ``processing`` transaction in the same commit. A concurrent
   attempt on the same order finds the claim taken and fails with
   OrderAlreadyProcessed.
2. Decide: card payloads are validated, then the (injectable) processor
   decides; cash on delivery is approved immediately.
3. Settle: approval confirms the order, decrements stock for every line and
   marks the transaction approved in one commit. If any decrement fails the
   whole unit is rolled back and the transaction is rejected instead, so an
   approved transaction always pairs with a confirmed order.
"""

import asyncio
import random
import uuid
from dataclasses import dataclass
from typing import Optional, Protocol

from libs.common.config import get_settings
from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from services.ordering_service.errors import (
    ConcurrentModification,
    InsufficientStock,
    MissingCardData,
    OrderAlreadyProcessed,
    ProductNotFound,
    TransactionAlreadyResolved,
    TransactionNotFound,
)
from services.ordering_service.models import (
    Order,
    OrderStatus,
    PaymentMethod,
    PaymentTransaction,
    SavedPaymentMethod,
    TransactionStatus,
)
from services.ordering_service.schemas import CardDetails
from services.ordering_service.services.card_validation import validate_card
from services.ordering_service.services.identifiers import identifiers
from services.ordering_service.services.order_ops import confirm_from_payment, get_order
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)
settings = get_settings()

CASH_AUTHORIZATION_CODE = "PENDING_COLLECTION"

REASON_INVALID_CARD = "Invalid card data"
REASON_PROCESSOR_REJECTED = "Rejected by processor"
REASON_STOCK_UNAVAILABLE = "Stock unavailable"
REASON_ORDER_CHANGED = "Order changed while the payment was processing"
REASON_RECONCILIATION = "Rejected during reconciliation"


# ---------------------------------------------------------------------------
# Processor decision strategies
# ---------------------------------------------------------------------------


class PaymentDecider(Protocol):
    async def decide(self, transaction: PaymentTransaction) -> bool:
        """Return True to approve, False to decline."""
        ...


class RandomApprovalDecider:
    """Simulated processor approving with a fixed probability."""

    def __init__(self, approval_probability: float, rng: Optional[random.Random] = None):
        self.approval_probability = approval_probability
        self._rng = rng or random.Random()

    async def decide(self, transaction: PaymentTransaction) -> bool:
        return self._rng.random() < self.approval_probability


class FixedDecider:
    """Always returns the same decision."""

    def __init__(self, approve: bool):
        self.approve = approve

    async def decide(self, transaction: PaymentTransaction) -> bool:
        return self.approve


def default_decider() -> PaymentDecider:
    return RandomApprovalDecider(settings.PAYMENT_APPROVAL_PROBABILITY)


@dataclass
class PaymentOutcome:
    transaction: PaymentTransaction
    order: Order
    message: str

    @property
    def approved(self) -> bool:
        return self.transaction.status == TransactionStatus.APPROVED


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def get_transaction(db: AsyncSession, transaction_id: uuid.UUID) -> PaymentTransaction:
    result = await db.execute(
        select(PaymentTransaction)
        .where(PaymentTransaction.id == transaction_id)
        .execution_options(populate_existing=True)
    )
    transaction = result.scalar_one_or_none()
    if not transaction:
        raise TransactionNotFound()
    return transaction


async def list_user_transactions(db: AsyncSession, user_id: str) -> list[PaymentTransaction]:
    result = await db.execute(
        select(PaymentTransaction)
        .where(PaymentTransaction.user_id == user_id)
        .order_by(PaymentTransaction.created_at.desc())
    )
    return list(result.scalars().all())


async def list_order_transactions(
    db: AsyncSession, order_id: uuid.UUID
) -> list[PaymentTransaction]:
    result = await db.execute(
        select(PaymentTransaction)
        .where(PaymentTransaction.order_id == order_id)
        .order_by(PaymentTransaction.created_at.desc())
    )
    return list(result.scalars().all())


async def _find_saved_method(
    db: AsyncSession, user_id: str, last4: str
) -> Optional[uuid.UUID]:
    result = await db.execute(
        select(SavedPaymentMethod.id)
        .where(
            SavedPaymentMethod.user_id == user_id,
            SavedPaymentMethod.last4 == last4,
            SavedPaymentMethod.is_active.is_(True),
        )
        .order_by(SavedPaymentMethod.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Claim and settle
# ---------------------------------------------------------------------------


async def _open_transaction(
    db: AsyncSession, order: Order, method: PaymentMethod
) -> PaymentTransaction:
    """Claim the order and create its ``processing`` transaction atomically."""
    transaction_id = uuid.uuid4()

    result = await db.execute(
        update(Order)
        .where(
            Order.id == order.id,
            Order.status == OrderStatus.PENDING,
            Order.processing_transaction_id.is_(None),
        )
        .values(processing_transaction_id=transaction_id, updated_at=utc_now())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        raise OrderAlreadyProcessed()

    # Read the total under the claim; item edits are blocked from here on
    amount = (
        await db.execute(select(Order.total).where(Order.id == order.id))
    ).scalar_one()

    transaction = PaymentTransaction(
        id=transaction_id,
        order_id=order.id,
        user_id=order.owner_id,
        method=method,
        amount=amount,
        status=TransactionStatus.PROCESSING,
        transaction_code=identifiers.transaction_code(),
    )
    db.add(transaction)
    await db.commit()

    logger.info(
        "Opened transaction %s for order %s (%s, amount=%s)",
        transaction.transaction_code,
        order.id,
        method.value,
        amount,
    )
    return transaction


async def _settle(db: AsyncSession, transaction_id: uuid.UUID, **values) -> None:
    """Move a transaction out of ``processing`` exactly once."""
    result = await db.execute(
        update(PaymentTransaction)
        .where(
            PaymentTransaction.id == transaction_id,
            PaymentTransaction.status == TransactionStatus.PROCESSING,
        )
        .values(processed_at=utc_now(), updated_at=utc_now(), **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise TransactionAlreadyResolved()


async def _outcome(db: AsyncSession, transaction_id: uuid.UUID, message: str) -> PaymentOutcome:
    transaction = await get_transaction(db, transaction_id)
    order = await get_order(db, transaction.order_id)
    return PaymentOutcome(transaction=transaction, order=order, message=message)


async def _reject(
    db: AsyncSession,
    transaction_id: uuid.UUID,
    order_id: uuid.UUID,
    reason: str,
    *,
    processor_reference: Optional[str] = None,
) -> PaymentOutcome:
    """Reject the transaction and release the order's payment claim."""
    try:
        await _settle(
            db,
            transaction_id,
            status=TransactionStatus.REJECTED,
            failure_reason=reason,
            processor_transaction_id=processor_reference,
        )
        await db.execute(
            update(Order)
            .where(
                Order.id == order_id,
                Order.processing_transaction_id == transaction_id,
            )
            .values(processing_transaction_id=None, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("Transaction %s rejected: %s", transaction_id, reason)
    return await _outcome(db, transaction_id, f"Payment rejected: {reason}")


async def _approve(
    db: AsyncSession,
    transaction_id: uuid.UUID,
    order_id: uuid.UUID,
    *,
    processor_reference: str,
    authorization_code: str,
    last4: Optional[str] = None,
    saved_method_id: Optional[uuid.UUID] = None,
) -> PaymentOutcome:
    """Approve, confirm the order and take stock as one unit of work."""
    transaction = await get_transaction(db, transaction_id)
    order = await get_order(db, order_id)

    try:
        await _settle(
            db,
            transaction_id,
            status=TransactionStatus.APPROVED,
            processor_transaction_id=processor_reference,
            authorization_code=authorization_code,
            saved_method_id=saved_method_id,
        )
        await confirm_from_payment(db, order, transaction, last4=last4)
        await db.commit()
    except (InsufficientStock, ProductNotFound) as exc:
        await db.rollback()
        logger.warning(
            "Approval of transaction %s rolled back, stock problem: %s",
            transaction_id,
            exc.detail,
        )
        return await _reject(
            db,
            transaction_id,
            order_id,
            REASON_STOCK_UNAVAILABLE,
            processor_reference=processor_reference,
        )
    except ConcurrentModification:
        await db.rollback()
        logger.warning(
            "Approval of transaction %s rolled back, order %s changed",
            transaction_id,
            order_id,
        )
        return await _reject(
            db,
            transaction_id,
            order_id,
            REASON_ORDER_CHANGED,
            processor_reference=processor_reference,
        )
    except Exception:
        await db.rollback()
        raise

    logger.info("Transaction %s approved, order %s confirmed", transaction_id, order_id)
    return await _outcome(db, transaction_id, "Payment approved")


# ---------------------------------------------------------------------------
# Public operations
# ---------------------------------------------------------------------------


async def process_payment(
    db: AsyncSession,
    *,
    order_id: uuid.UUID,
    method: PaymentMethod,
    card: Optional[CardDetails] = None,
    decider: Optional[PaymentDecider] = None,
    timeout: Optional[float] = None,
) -> PaymentOutcome:
    """Resolve one payment attempt for a pending order.

    Raises OrderNotFound, OrderAlreadyProcessed or MissingCardData before any
    transaction exists. Otherwise always returns an outcome carrying the
    transaction's state; declines are outcomes, not errors.
    """
    method = PaymentMethod(method)
    decider = decider or default_decider()
    timeout = timeout if timeout is not None else settings.PAYMENT_PROCESSOR_TIMEOUT_SECONDS

    order = await get_order(db, order_id)
    if order.status != OrderStatus.PENDING:
        raise OrderAlreadyProcessed()
    if order.processing_transaction_id is not None:
        raise OrderAlreadyProcessed("A payment for this order is already in progress")
    if method == PaymentMethod.CARD and card is None:
        raise MissingCardData()

    transaction = await _open_transaction(db, order, method)
    transaction_id = transaction.id

    if method == PaymentMethod.CASH_ON_DELIVERY:
        return await _approve(
            db,
            transaction_id,
            order.id,
            processor_reference=identifiers.processor_reference("COD"),
            authorization_code=CASH_AUTHORIZATION_CODE,
        )

    check = validate_card(card)
    if not check.is_valid:
        logger.info("Card rejected for transaction %s: %s", transaction_id, check.reason)
        return await _reject(
            db, transaction_id, order.id, f"{REASON_INVALID_CARD}: {check.reason}"
        )

    try:
        approved = await asyncio.wait_for(decider.decide(transaction), timeout)
    except asyncio.TimeoutError:
        logger.warning(
            "Processor timed out for transaction %s; left processing for reconciliation",
            transaction_id,
        )
        return await _outcome(
            db, transaction_id, "Payment is awaiting processor confirmation"
        )

    processor_reference = identifiers.processor_reference("TXN")
    if not approved:
        return await _reject(
            db,
            transaction_id,
            order.id,
            REASON_PROCESSOR_REJECTED,
            processor_reference=processor_reference,
        )

    saved_method_id = await _find_saved_method(db, order.owner_id, check.last4)
    return await _approve(
        db,
        transaction_id,
        order.id,
        processor_reference=processor_reference,
        authorization_code=identifiers.authorization_code(),
        last4=check.last4,
        saved_method_id=saved_method_id,
    )


async def resolve_transaction(
    db: AsyncSession,
    transaction_id: uuid.UUID,
    *,
    approved: bool,
    authorization_code: Optional[str] = None,
) -> PaymentOutcome:
    """Manually settle a transaction left ``processing`` (e.g. after a timeout)."""
    transaction = await get_transaction(db, transaction_id)
    if transaction.is_resolved:
        raise TransactionAlreadyResolved()

    processor_reference = identifiers.processor_reference("SIM")
    if approved:
        return await _approve(
            db,
            transaction.id,
            transaction.order_id,
            processor_reference=processor_reference,
            authorization_code=authorization_code or identifiers.authorization_code(),
        )
    return await _reject(
        db,
        transaction.id,
        transaction.order_id,
        REASON_RECONCILIATION,
        processor_reference=processor_reference,
    )
