"""Unit tests for stock mutations."""

import asyncio
import uuid

import pytest
from services.ordering_service.errors import (
    InsufficientStock,
    InvalidStockQuantity,
    ProductNotFound,
)
from services.ordering_service.models import Product
from services.ordering_service.services.inventory_ops import (
    adjust_stock,
    current_stock,
    decrement_stock,
    increment_stock,
)
from sqlalchemy import select
from tests.factories import ProductFactory


async def _make_product(db, **overrides) -> Product:
    product = ProductFactory.create(**overrides)
    db.add(product)
    await db.commit()
    return product


async def _reload(db, product_id) -> Product:
    result = await db.execute(
        select(Product)
        .where(Product.id == product_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


# ---------------------------------------------------------------------------
# decrement_stock
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_decrement_reduces_stock(db_session):
    product = await _make_product(db_session, stock=5)

    remaining = await decrement_stock(db_session, product.id, 2)
    await db_session.commit()

    assert remaining == 3
    reloaded = await _reload(db_session, product.id)
    assert reloaded.stock == 3
    assert reloaded.is_available is True


@pytest.mark.asyncio
@pytest.mark.unit
async def test_decrement_to_zero_clears_availability(db_session):
    product = await _make_product(db_session, stock=2)

    await decrement_stock(db_session, product.id, 2)
    await db_session.commit()

    reloaded = await _reload(db_session, product.id)
    assert reloaded.stock == 0
    assert reloaded.is_available is False


@pytest.mark.asyncio
@pytest.mark.unit
async def test_decrement_more_than_stock_fails_and_leaves_stock(db_session):
    product = await _make_product(db_session, stock=3)
    product_id = product.id

    with pytest.raises(InsufficientStock) as exc_info:
        await decrement_stock(db_session, product_id, 4)
    await db_session.rollback()

    assert "Available: 3, requested: 4" in exc_info.value.detail
    assert await current_stock(db_session, product_id) == 3


@pytest.mark.asyncio
@pytest.mark.unit
async def test_decrement_unknown_product(db_session):
    with pytest.raises(ProductNotFound):
        await decrement_stock(db_session, uuid.uuid4(), 1)


@pytest.mark.asyncio
@pytest.mark.unit
@pytest.mark.parametrize("quantity", [0, -1, True])
async def test_decrement_rejects_non_positive_quantity(db_session, quantity):
    product = await _make_product(db_session)

    with pytest.raises(InvalidStockQuantity):
        await decrement_stock(db_session, product.id, quantity)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_concurrent_decrements_never_go_negative(session_factory):
    """Ten buyers race for five units; exactly five succeed."""
    async with session_factory() as db:
        product = await _make_product(db, stock=5)
    product_id = product.id

    async def buy_one():
        async with session_factory() as db:
            try:
                await decrement_stock(db, product_id, 1)
                await db.commit()
                return True
            except InsufficientStock:
                await db.rollback()
                return False

    results = await asyncio.gather(*(buy_one() for _ in range(10)))

    assert results.count(True) == 5
    async with session_factory() as db:
        assert await current_stock(db, product_id) == 0


# ---------------------------------------------------------------------------
# increment_stock / adjust_stock
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_increment_restores_availability(db_session):
    product = await _make_product(db_session, stock=0, is_available=False)

    remaining = await increment_stock(db_session, product.id, 4)
    await db_session.commit()

    assert remaining == 4
    reloaded = await _reload(db_session, product.id)
    assert reloaded.is_available is True


@pytest.mark.asyncio
@pytest.mark.unit
async def test_increment_unknown_product(db_session):
    with pytest.raises(ProductNotFound):
        await increment_stock(db_session, uuid.uuid4(), 1)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_adjust_stock_both_directions(db_session):
    product = await _make_product(db_session, stock=5)

    lowered = await adjust_stock(db_session, product.id, -5)
    assert lowered.stock == 0
    assert lowered.is_available is False

    raised = await adjust_stock(db_session, product.id, 3)
    assert raised.stock == 3
    assert raised.is_available is True


@pytest.mark.asyncio
@pytest.mark.unit
async def test_adjust_stock_rejects_zero(db_session):
    product = await _make_product(db_session)

    with pytest.raises(InvalidStockQuantity):
        await adjust_stock(db_session, product.id, 0)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_adjust_stock_below_zero_fails(db_session):
    product = await _make_product(db_session, stock=2)
    product_id = product.id

    with pytest.raises(InsufficientStock):
        await adjust_stock(db_session, product_id, -3)

    assert await current_stock(db_session, product_id) == 2
