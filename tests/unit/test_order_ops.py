"""Unit tests for the order lifecycle.

Tests call order_ops functions directly with the db_session fixture.
"""

import asyncio
import uuid
from decimal import Decimal

import pytest
from services.ordering_service.errors import (
    AccessDenied,
    InvalidEstimate,
    InvalidInputError,
    InvalidOrderItems,
    InvoiceAlreadyAssigned,
    MissingDeliveryAddress,
    OrderFinalized,
    OrderNotEditable,
    OrderNotFound,
)
from services.ordering_service.models import (
    DeliveryType,
    OrderStatus,
    PaymentMethod,
)
from services.ordering_service.schemas import PaymentMetadata
from services.ordering_service.services.order_ops import (
    assign_invoice,
    cancel_order,
    create_order,
    ensure_order_access,
    get_order,
    list_orders,
    list_recent_orders,
    transition_order,
    update_estimate,
    update_order_items,
)
from tests.conftest import make_admin_user, make_member_user
from tests.factories import ProductFactory, address_payload, item_payload


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _make_products(db, *prices):
    products = [ProductFactory.create(price=Decimal(p)) for p in prices]
    db.add_all(products)
    await db.commit()
    return products


async def _make_order(db, owner_id="member-1", delivery_type=DeliveryType.PICKUP, **kwargs):
    (product,) = await _make_products(db, "10.00")
    return await create_order(
        db,
        owner_id=owner_id,
        items=[item_payload(product, 2)],
        delivery_type=delivery_type,
        payment_method=PaymentMethod.CARD,
        delivery_address=address_payload() if delivery_type == DeliveryType.DELIVERY else None,
        **kwargs,
    )


# ---------------------------------------------------------------------------
# create_order
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_create_order_computes_total(db_session):
    burger, soda = await _make_products(db_session, "10.00", "5.00")

    order = await create_order(
        db_session,
        owner_id="member-1",
        items=[item_payload(burger, 2), item_payload(soda, 1)],
        delivery_type=DeliveryType.DELIVERY,
        delivery_address=address_payload(),
        payment_method=PaymentMethod.CARD,
    )

    assert order.total == Decimal("25.00")
    assert order.status == OrderStatus.PENDING
    assert order.invoice_number is None
    assert [item.quantity for item in order.items] == [2, 1]
    assert order.delivery_address["city"] == "Santiago"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_sub_cent_prices_round_per_line(db_session):
    fries, shake = await _make_products(db_session, "1.00", "2.00")

    order = await create_order(
        db_session,
        owner_id="member-1",
        items=[item_payload(fries, 3, price="0.335"), item_payload(shake, 1, price="1.004")],
        delivery_type=DeliveryType.PICKUP,
        payment_method=PaymentMethod.CARD,
    )

    assert [item.unit_price for item in order.items] == [Decimal("0.34"), Decimal("1.00")]
    assert [item.line_total for item in order.items] == [Decimal("1.02"), Decimal("1.00")]
    assert order.total == Decimal("2.02")
    assert order.total == sum(
        (Decimal(item.unit_price) * item.quantity for item in order.items), Decimal("0")
    )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_create_order_default_estimates(db_session):
    delivery = await _make_order(db_session, delivery_type=DeliveryType.DELIVERY)
    pickup = await _make_order(db_session)
    custom = await _make_order(db_session, estimated_minutes=15)

    assert delivery.estimated_minutes == 40
    assert pickup.estimated_minutes == 25
    assert custom.estimated_minutes == 15


@pytest.mark.asyncio
@pytest.mark.unit
async def test_delivery_order_requires_address(db_session):
    (product,) = await _make_products(db_session, "10.00")

    with pytest.raises(MissingDeliveryAddress):
        await create_order(
            db_session,
            owner_id="member-1",
            items=[item_payload(product)],
            delivery_type=DeliveryType.DELIVERY,
            payment_method=PaymentMethod.CASH_ON_DELIVERY,
        )

    assert await list_orders(db_session, owner_id="member-1") == []


@pytest.mark.asyncio
@pytest.mark.unit
async def test_pickup_order_drops_address(db_session):
    (product,) = await _make_products(db_session, "10.00")

    order = await create_order(
        db_session,
        owner_id="member-1",
        items=[item_payload(product)],
        delivery_type=DeliveryType.PICKUP,
        delivery_address=address_payload(),
        payment_method=PaymentMethod.CARD,
    )

    assert order.delivery_address is None


@pytest.mark.asyncio
@pytest.mark.unit
async def test_create_order_rejects_empty_items(db_session):
    with pytest.raises(InvalidOrderItems):
        await create_order(
            db_session,
            owner_id="member-1",
            items=[],
            delivery_type=DeliveryType.PICKUP,
            payment_method=PaymentMethod.CARD,
        )


@pytest.mark.asyncio
@pytest.mark.unit
@pytest.mark.parametrize("quantity,price", [(0, "1.00"), (-2, "1.00"), (1, "-0.01")])
async def test_create_order_rejects_bad_lines(db_session, quantity, price):
    (product,) = await _make_products(db_session, "10.00")

    with pytest.raises(InvalidOrderItems):
        await create_order(
            db_session,
            owner_id="member-1",
            items=[item_payload(product, quantity, price=price)],
            delivery_type=DeliveryType.PICKUP,
            payment_method=PaymentMethod.CARD,
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_create_order_keeps_payment_metadata(db_session):
    order = await _make_order(
        db_session,
        payment_metadata=PaymentMetadata(method=PaymentMethod.CARD, last4="4242"),
    )

    assert order.payment_last4 == "4242"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_create_order_rejects_mismatched_metadata(db_session):
    with pytest.raises(InvalidInputError):
        await _make_order(
            db_session,
            payment_metadata=PaymentMetadata(method=PaymentMethod.CASH_ON_DELIVERY),
        )


# ---------------------------------------------------------------------------
# Queries and access
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_get_order_not_found(db_session):
    with pytest.raises(OrderNotFound):
        await get_order(db_session, uuid.uuid4())


@pytest.mark.asyncio
@pytest.mark.unit
async def test_list_orders_filters(db_session):
    mine = await _make_order(db_session, owner_id="member-1")
    await _make_order(db_session, owner_id="member-2")
    await cancel_order(db_session, mine.id)

    assert [o.id for o in await list_orders(db_session, owner_id="member-1")] == [mine.id]
    assert len(await list_orders(db_session)) == 2
    cancelled = await list_orders(db_session, status=OrderStatus.CANCELLED)
    assert [o.id for o in cancelled] == [mine.id]
    assert len(await list_recent_orders(db_session, days=1)) == 2


@pytest.mark.asyncio
@pytest.mark.unit
async def test_order_access_owner_or_admin(db_session):
    order = await _make_order(db_session, owner_id="member-1")

    ensure_order_access(order, make_member_user("member-1"))
    ensure_order_access(order, make_admin_user())
    with pytest.raises(AccessDenied):
        ensure_order_access(order, make_member_user("member-2"))


# ---------------------------------------------------------------------------
# update_order_items / update_estimate
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_update_items_recomputes_total(db_session):
    order = await _make_order(db_session)
    wrap, juice = await _make_products(db_session, "7.50", "2.25")

    updated = await update_order_items(
        db_session, order.id, [item_payload(wrap, 2), item_payload(juice, 2)]
    )

    assert updated.total == Decimal("19.50")
    assert [item.product_name for item in updated.items] == [wrap.name, juice.name]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_update_items_only_while_pending(db_session):
    order = await _make_order(db_session)
    await transition_order(db_session, order.id, OrderStatus.CONFIRMED)
    (product,) = await _make_products(db_session, "1.00")

    with pytest.raises(OrderNotEditable):
        await update_order_items(db_session, order.id, [item_payload(product)])


@pytest.mark.asyncio
@pytest.mark.unit
async def test_update_estimate(db_session):
    order = await _make_order(db_session)

    updated = await update_estimate(db_session, order.id, 55)
    assert updated.estimated_minutes == 55

    with pytest.raises(InvalidEstimate):
        await update_estimate(db_session, order.id, -1)


# ---------------------------------------------------------------------------
# transition_order
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_transition_is_permissive_until_final(db_session):
    order = await _make_order(db_session)

    # No adjacency graph: pending can jump straight to delivered
    delivered = await transition_order(db_session, order.id, OrderStatus.DELIVERED)
    assert delivered.status == OrderStatus.DELIVERED

    with pytest.raises(OrderFinalized) as exc_info:
        await transition_order(db_session, order.id, OrderStatus.IN_PREPARATION)
    assert exc_info.value.detail == "Cannot modify a finalized or cancelled order"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_transition_to_confirmed_stamps_time(db_session):
    order = await _make_order(db_session)

    confirmed = await transition_order(db_session, order.id, OrderStatus.CONFIRMED)

    assert confirmed.confirmed_at is not None


@pytest.mark.asyncio
@pytest.mark.unit
async def test_transition_rejects_unknown_state(db_session):
    order = await _make_order(db_session)

    with pytest.raises(InvalidInputError):
        await transition_order(db_session, order.id, "teleported")


# ---------------------------------------------------------------------------
# cancel_order
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_cancel_twice_succeeds_once(db_session):
    order = await _make_order(db_session)

    first = await cancel_order(db_session, order.id)
    second = await cancel_order(db_session, order.id)

    assert first.success is True
    assert second.success is False
    reloaded = await get_order(db_session, order.id)
    assert reloaded.status == OrderStatus.CANCELLED
    assert reloaded.cancelled_at is not None


@pytest.mark.asyncio
@pytest.mark.unit
async def test_cancel_delivered_order_fails(db_session):
    order = await _make_order(db_session)
    await transition_order(db_session, order.id, OrderStatus.DELIVERED)

    result = await cancel_order(db_session, order.id)

    assert result.success is False
    assert (await get_order(db_session, order.id)).status == OrderStatus.DELIVERED


@pytest.mark.asyncio
@pytest.mark.unit
@pytest.mark.parametrize(
    "status,allowed",
    [
        (OrderStatus.CONFIRMED, True),
        (OrderStatus.IN_PREPARATION, True),
        (OrderStatus.IN_TRANSIT, False),
        (OrderStatus.READY_FOR_PICKUP, False),
    ],
)
async def test_cancel_allowed_states(db_session, status, allowed):
    order = await _make_order(db_session)
    await transition_order(db_session, order.id, status)

    result = await cancel_order(db_session, order.id)

    assert result.success is allowed


@pytest.mark.asyncio
@pytest.mark.unit
async def test_cancel_unknown_order_reports_failure(db_session):
    result = await cancel_order(db_session, uuid.uuid4())

    assert result.success is False
    assert "not found" in result.message


# ---------------------------------------------------------------------------
# assign_invoice
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_assign_invoice_once(db_session):
    order = await _make_order(db_session)

    number = await assign_invoice(db_session, order.id)

    assert number.startswith("B")
    assert (await get_order(db_session, order.id)).invoice_number == number
    with pytest.raises(InvoiceAlreadyAssigned):
        await assign_invoice(db_session, order.id)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_concurrent_invoices_are_unique(session_factory):
    async with session_factory() as db:
        order_ids = [(await _make_order(db)).id for _ in range(100)]

    async def invoice(order_id):
        async with session_factory() as db:
            return await assign_invoice(db, order_id)

    numbers = await asyncio.gather(*(invoice(order_id) for order_id in order_ids))

    assert len(set(numbers)) == 100


@pytest.mark.asyncio
@pytest.mark.unit
async def test_concurrent_invoice_on_same_order_assigns_one(session_factory):
    async with session_factory() as db:
        order_id = (await _make_order(db)).id

    async def invoice():
        async with session_factory() as db:
            try:
                return await assign_invoice(db, order_id)
            except InvoiceAlreadyAssigned:
                return None

    results = await asyncio.gather(*(invoice() for _ in range(5)))

    assert len([r for r in results if r]) == 1
