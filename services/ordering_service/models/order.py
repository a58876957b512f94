"""Order models: the order header and its snapshotted line items."""

import uuid
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.ordering_service.models.enums import (
    DeliveryType,
    OrderStatus,
    PaymentMethod,
    enum_values,
)
from sqlalchemy import JSON, CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

CENT = Decimal("0.01")


class Order(Base):
    """Customer orders."""

    __tablename__ = "ordering_orders"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)

    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    status: Mapped[OrderStatus] = mapped_column(
        SAEnum(
            OrderStatus,
            values_callable=enum_values,
            name="ordering_order_status_enum",
        ),
        default=OrderStatus.PENDING,
        server_default="pending",
        index=True,
        nullable=False,
    )

    # Fulfillment
    delivery_type: Mapped[DeliveryType] = mapped_column(
        SAEnum(
            DeliveryType,
            values_callable=enum_values,
            name="ordering_delivery_type_enum",
        ),
        nullable=False,
    )
    delivery_address: Mapped[Optional[dict]] = mapped_column(
        JSON, nullable=True
    )  # {"street": "...", "district": "...", "city": "...", "notes": "..."}
    estimated_minutes: Mapped[int] = mapped_column(
        Integer, default=30, server_default="30", nullable=False
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Payment metadata
    payment_method: Mapped[PaymentMethod] = mapped_column(
        SAEnum(
            PaymentMethod,
            values_callable=enum_values,
            name="ordering_payment_method_enum",
        ),
        nullable=False,
    )
    payment_last4: Mapped[Optional[str]] = mapped_column(String(4), nullable=True)
    payment_reference: Mapped[Optional[str]] = mapped_column(
        String(64), nullable=True
    )  # Transaction code of the approved payment

    # Set while a payment attempt holds the order; cleared when it resolves
    processing_transaction_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, nullable=True
    )

    invoice_number: Mapped[Optional[str]] = mapped_column(
        String(40), unique=True, nullable=True
    )

    confirmed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    # Relationships
    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.position",
        lazy="selectin",
    )

    __table_args__ = (CheckConstraint("total >= 0", name="non_negative_total"),)

    def calculate_total(self) -> Decimal:
        """Sum of the rounded line totals."""
        return sum((item.line_total for item in self.items), Decimal("0.00"))

    def __repr__(self):
        return f"<Order {self.id} {self.status.value}>"


class OrderItem(Base):
    """Order line items (name and price snapshot at order time)."""

    __tablename__ = "ordering_order_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("ordering_orders.id", ondelete="CASCADE"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    product_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    product_name: Mapped[str] = mapped_column(String(100), nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="positive_quantity"),
        CheckConstraint("unit_price >= 0", name="non_negative_price"),
    )

    # Relationships
    order = relationship("Order", back_populates="items")

    @property
    def line_total(self) -> Decimal:
        line = Decimal(self.unit_price) * self.quantity
        return line.quantize(CENT, rounding=ROUND_HALF_UP)

    def __repr__(self):
        return f"<OrderItem {self.product_name} x{self.quantity}>"
