"""Stock mutations for catalog products.

Every change is a single conditional UPDATE so concurrent decrements can
never drive stock below zero. Functions do not commit: the caller owns the
unit of work (an approved payment, or an admin adjustment).
"""

import uuid

from libs.common.logging import get_logger
from services.ordering_service.errors import (
    InsufficientStock,
    InvalidStockQuantity,
    ProductNotFound,
)
from services.ordering_service.models import Product
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


def _check_quantity(quantity: int) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise InvalidStockQuantity()


async def current_stock(db: AsyncSession, product_id: uuid.UUID) -> int:
    """Read the stock straight from the database. Raises ProductNotFound."""
    result = await db.execute(select(Product.stock).where(Product.id == product_id))
    stock = result.scalar_one_or_none()
    if stock is None:
        raise ProductNotFound()
    return stock


async def decrement_stock(db: AsyncSession, product_id: uuid.UUID, quantity: int) -> int:
    """Take ``quantity`` units out of stock and return the new stock level.

    Fails with InsufficientStock (stock untouched) when quantity exceeds the
    current stock. Reaching exactly zero clears the availability flag.
    """
    _check_quantity(quantity)

    result = await db.execute(
        update(Product)
        .where(Product.id == product_id, Product.stock >= quantity)
        .values(stock=Product.stock - quantity)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        available = await current_stock(db, product_id)
        raise InsufficientStock(
            f"Insufficient stock. Available: {available}, requested: {quantity}"
        )

    await db.execute(
        update(Product)
        .where(Product.id == product_id, Product.stock == 0)
        .values(is_available=False)
        .execution_options(synchronize_session=False)
    )

    stock = await current_stock(db, product_id)
    logger.info("Stock of product %s decremented by %d -> %d", product_id, quantity, stock)
    return stock


async def increment_stock(db: AsyncSession, product_id: uuid.UUID, quantity: int) -> int:
    """Add ``quantity`` units and return the new stock level.

    A product that was unavailable becomes available again once stock is positive.
    """
    _check_quantity(quantity)

    result = await db.execute(
        update(Product)
        .where(Product.id == product_id)
        .values(stock=Product.stock + quantity)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise ProductNotFound()

    await db.execute(
        update(Product)
        .where(
            Product.id == product_id,
            Product.stock > 0,
            Product.is_available.is_(False),
        )
        .values(is_available=True)
        .execution_options(synchronize_session=False)
    )

    stock = await current_stock(db, product_id)
    logger.info("Stock of product %s incremented by %d -> %d", product_id, quantity, stock)
    return stock


async def adjust_stock(db: AsyncSession, product_id: uuid.UUID, delta: int) -> Product:
    """Administrative correction: negative delta decrements, positive increments.

    Commits on success and returns the refreshed product.
    """
    if isinstance(delta, bool) or not isinstance(delta, int) or delta == 0:
        raise InvalidStockQuantity("Stock adjustment must be a non-zero integer")

    try:
        if delta < 0:
            await decrement_stock(db, product_id, -delta)
        else:
            await increment_stock(db, product_id, delta)
    except Exception:
        await db.rollback()
        raise

    await db.commit()

    result = await db.execute(
        select(Product)
        .where(Product.id == product_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()
