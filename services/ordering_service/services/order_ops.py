"""Order lifecycle: creation, item edits, state transitions, cancellation, invoices.

State changes are compare-and-set UPDATEs on the state the caller observed,
so two concurrent transitions cannot both succeed from a stale read.
"""

import uuid
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Sequence

from libs.auth.models import AuthUser
from libs.common.config import get_settings
from libs.common.datetime_utils import days_ago, utc_now
from libs.common.logging import get_logger
from services.ordering_service.errors import (
    AccessDenied,
    ConcurrentModification,
    ConflictError,
    InvalidEstimate,
    InvalidInputError,
    InvalidOrderItems,
    InvoiceAlreadyAssigned,
    MissingDeliveryAddress,
    OrderFinalized,
    OrderingError,
    OrderNotCancellable,
    OrderNotEditable,
    OrderNotFound,
)
from services.ordering_service.models import (
    CANCELLABLE_ORDER_STATUSES,
    CENT,
    FINAL_ORDER_STATUSES,
    DeliveryType,
    Order,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    PaymentTransaction,
)
from services.ordering_service.schemas import (
    ActionResult,
    DeliveryAddress,
    OrderItemCreate,
    PaymentMetadata,
)
from services.ordering_service.services.identifiers import identifiers
from services.ordering_service.services.inventory_ops import decrement_stock
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)
settings = get_settings()

INVOICE_ATTEMPTS = 3


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


async def get_order(db: AsyncSession, order_id: uuid.UUID) -> Order:
    """Load an order (and its items) fresh from the database."""
    result = await db.execute(
        select(Order)
        .where(Order.id == order_id)
        .execution_options(populate_existing=True)
    )
    order = result.scalar_one_or_none()
    if not order:
        raise OrderNotFound()
    return order


def ensure_order_access(order: Order, user: AuthUser) -> None:
    """Only the owner or a privileged role may act on an order."""
    if order.owner_id != user.user_id and not user.is_privileged:
        raise AccessDenied("Not allowed to access this order")


async def list_orders(
    db: AsyncSession,
    *,
    owner_id: Optional[str] = None,
    status: Optional[OrderStatus] = None,
    limit: Optional[int] = None,
) -> list[Order]:
    """Orders newest first, optionally filtered by owner and/or state."""
    query = select(Order).order_by(Order.created_at.desc())
    if owner_id is not None:
        query = query.where(Order.owner_id == owner_id)
    if status is not None:
        query = query.where(Order.status == OrderStatus(status))
    query = query.limit(limit or settings.ORDER_LIST_LIMIT)

    result = await db.execute(query)
    return list(result.scalars().all())


async def list_recent_orders(db: AsyncSession, days: Optional[int] = None) -> list[Order]:
    """Orders created within the last ``days`` days (default RECENT_ORDERS_DAYS)."""
    since = days_ago(days if days is not None else settings.RECENT_ORDERS_DAYS)
    result = await db.execute(
        select(Order).where(Order.created_at >= since).order_by(Order.created_at.desc())
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Creation and item edits
# ---------------------------------------------------------------------------


def _build_items(items: Sequence[OrderItemCreate]) -> list[OrderItem]:
    if not items:
        raise InvalidOrderItems()

    built = []
    for position, item in enumerate(items):
        quantity = item.quantity
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise InvalidOrderItems(
                f"Quantity for '{item.name}' must be a positive integer"
            )
        price = Decimal(item.price)
        if price < 0:
            raise InvalidOrderItems(f"Price for '{item.name}' cannot be negative")
        # Stored prices have cent precision; the total is summed from these
        price = price.quantize(CENT, rounding=ROUND_HALF_UP)

        built.append(
            OrderItem(
                position=position,
                product_id=item.product_id,
                product_name=item.name,
                unit_price=price,
                quantity=quantity,
                image_url=item.image_url,
            )
        )
    return built


def _default_estimate(delivery_type: DeliveryType) -> int:
    if delivery_type == DeliveryType.DELIVERY:
        return settings.DELIVERY_ESTIMATE_MINUTES
    return settings.PICKUP_ESTIMATE_MINUTES


async def create_order(
    db: AsyncSession,
    *,
    owner_id: str,
    items: Sequence[OrderItemCreate],
    delivery_type: DeliveryType,
    payment_method: PaymentMethod,
    delivery_address: Optional[DeliveryAddress] = None,
    payment_metadata: Optional[PaymentMetadata] = None,
    notes: Optional[str] = None,
    estimated_minutes: Optional[int] = None,
) -> Order:
    """Create a ``pending`` order. No invoice number is assigned here."""
    delivery_type = DeliveryType(delivery_type)
    payment_method = PaymentMethod(payment_method)

    order_items = _build_items(items)

    if delivery_type == DeliveryType.DELIVERY and delivery_address is None:
        raise MissingDeliveryAddress()
    if payment_metadata is not None and payment_metadata.method != payment_method:
        raise InvalidInputError("Payment metadata does not match the payment method")
    if estimated_minutes is not None and estimated_minutes < 0:
        raise InvalidEstimate()

    order = Order(
        owner_id=owner_id,
        items=order_items,
        status=OrderStatus.PENDING,
        delivery_type=delivery_type,
        # Pickup orders never carry an address
        delivery_address=(
            delivery_address.model_dump()
            if delivery_type == DeliveryType.DELIVERY
            else None
        ),
        payment_method=payment_method,
        payment_last4=payment_metadata.last4 if payment_metadata else None,
        payment_reference=(
            payment_metadata.transaction_reference if payment_metadata else None
        ),
        estimated_minutes=(
            estimated_minutes
            if estimated_minutes is not None
            else _default_estimate(delivery_type)
        ),
        notes=notes or "",
    )
    order.total = order.calculate_total()

    db.add(order)
    await db.commit()

    logger.info(
        "Created order %s for %s (%d items, total=%s)",
        order.id,
        owner_id,
        len(order_items),
        order.total,
    )
    return await get_order(db, order.id)


async def update_order_items(
    db: AsyncSession, order_id: uuid.UUID, items: Sequence[OrderItemCreate]
) -> Order:
    """Replace the line items of a pending order and recompute its total."""
    order = await get_order(db, order_id)
    if order.status != OrderStatus.PENDING or order.processing_transaction_id:
        raise OrderNotEditable()

    order.items = _build_items(items)
    new_total = order.calculate_total()
    await db.flush()

    result = await db.execute(
        update(Order)
        .where(
            Order.id == order_id,
            Order.status == OrderStatus.PENDING,
            Order.processing_transaction_id.is_(None),
        )
        .values(total=new_total, updated_at=utc_now())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        raise ConcurrentModification()

    await db.commit()
    logger.info("Replaced items of order %s (total=%s)", order_id, new_total)
    return await get_order(db, order_id)


# ---------------------------------------------------------------------------
# State changes
# ---------------------------------------------------------------------------


async def _compare_and_set_status(
    db: AsyncSession, order: Order, target: OrderStatus, **values
) -> None:
    """Move ``order`` to ``target`` only if its state is still the one we read."""
    result = await db.execute(
        update(Order)
        .where(Order.id == order.id, Order.status == order.status)
        .values(status=target, updated_at=utc_now(), **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        raise ConcurrentModification()


async def transition_order(
    db: AsyncSession, order_id: uuid.UUID, target: OrderStatus
) -> Order:
    """Move an order to any enumerated state unless it is finalized or cancelled.

    No adjacency graph is enforced, e.g. ``pending -> delivered`` is accepted.
    """
    try:
        target = OrderStatus(target)
    except ValueError:
        raise InvalidInputError(f"Invalid order status: {target}")

    order = await get_order(db, order_id)
    if order.status in FINAL_ORDER_STATUSES:
        raise OrderFinalized()

    previous = order.status
    extra = {}
    if target == OrderStatus.CANCELLED:
        extra["cancelled_at"] = utc_now()
    elif target == OrderStatus.CONFIRMED and order.confirmed_at is None:
        extra["confirmed_at"] = utc_now()

    await _compare_and_set_status(db, order, target, **extra)
    await db.commit()

    logger.info("Order %s moved %s -> %s", order_id, previous.value, target.value)
    return await get_order(db, order_id)


async def cancel_order(db: AsyncSession, order_id: uuid.UUID) -> ActionResult:
    """Cancel from pending/confirmed/in_preparation.

    Reports failure instead of raising; a second call on the same order fails
    and leaves it untouched.
    """
    try:
        order = await get_order(db, order_id)
        if order.status not in CANCELLABLE_ORDER_STATUSES:
            raise OrderNotCancellable()
        await _compare_and_set_status(
            db, order, OrderStatus.CANCELLED, cancelled_at=utc_now()
        )
        await db.commit()
    except OrderingError as exc:
        logger.warning("Cancellation of order %s refused: %s", order_id, exc.detail)
        return ActionResult(success=False, message=f"Could not cancel order: {exc.detail}")

    logger.info("Cancelled order %s", order_id)
    return ActionResult(success=True, message="Order cancelled")


async def update_estimate(
    db: AsyncSession, order_id: uuid.UUID, estimated_minutes: int
) -> Order:
    """Set the estimated fulfillment time in minutes."""
    if estimated_minutes < 0:
        raise InvalidEstimate()

    order = await get_order(db, order_id)
    order.estimated_minutes = estimated_minutes
    await db.commit()

    logger.info("Order %s estimate set to %d minutes", order_id, estimated_minutes)
    return await get_order(db, order_id)


async def assign_invoice(db: AsyncSession, order_id: uuid.UUID) -> str:
    """Assign a unique invoice number once. Fails if one is already present."""
    for attempt in range(1, INVOICE_ATTEMPTS + 1):
        order = await get_order(db, order_id)
        if order.invoice_number:
            raise InvoiceAlreadyAssigned()

        number = identifiers.invoice_number()
        try:
            result = await db.execute(
                update(Order)
                .where(Order.id == order_id, Order.invoice_number.is_(None))
                .values(invoice_number=number, updated_at=utc_now())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                await db.rollback()
                raise InvoiceAlreadyAssigned()
            await db.commit()
        except IntegrityError:
            await db.rollback()
            logger.warning(
                "Invoice number collision for order %s (attempt %d)", order_id, attempt
            )
            continue

        logger.info("Assigned invoice %s to order %s", number, order_id)
        return number

    raise ConflictError("Could not allocate a unique invoice number")


async def confirm_from_payment(
    db: AsyncSession,
    order: Order,
    transaction: PaymentTransaction,
    *,
    last4: Optional[str] = None,
) -> None:
    """Confirm a pending order for an approved payment and take its stock.

    Only valid while ``transaction`` holds the order's payment claim. Does not
    commit: the payment processor commits confirmation, stock decrements and
    the transaction outcome together, or rolls all of them back.
    """
    values = {
        "status": OrderStatus.CONFIRMED,
        "confirmed_at": utc_now(),
        "updated_at": utc_now(),
        "processing_transaction_id": None,
        "payment_method": transaction.method,
        "payment_reference": transaction.transaction_code,
    }
    if last4:
        values["payment_last4"] = last4

    result = await db.execute(
        update(Order)
        .where(
            Order.id == order.id,
            Order.status == OrderStatus.PENDING,
            Order.processing_transaction_id == transaction.id,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise ConcurrentModification("Order changed while the payment was processing")

    for item in order.items:
        await decrement_stock(db, item.product_id, item.quantity)
