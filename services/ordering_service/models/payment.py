"""Payment models: transaction attempts and saved (tokenized) card references."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.ordering_service.models.enums import (
    CardNetwork,
    PaymentMethod,
    TransactionStatus,
    enum_values,
)
from sqlalchemy import Boolean, CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Index, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column


class PaymentTransaction(Base):
    """One attempt to collect payment for an order."""

    __tablename__ = "ordering_payment_transactions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("ordering_orders.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    user_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)

    method: Mapped[PaymentMethod] = mapped_column(
        SAEnum(
            PaymentMethod,
            values_callable=enum_values,
            name="ordering_payment_method_enum",
        ),
        nullable=False,
    )
    saved_method_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("ordering_saved_payment_methods.id", ondelete="SET NULL"),
        nullable=True,
    )  # Card payments only

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    status: Mapped[TransactionStatus] = mapped_column(
        SAEnum(
            TransactionStatus,
            values_callable=enum_values,
            name="ordering_transaction_status_enum",
        ),
        default=TransactionStatus.PROCESSING,
        server_default="processing",
        index=True,
        nullable=False,
    )
    transaction_code: Mapped[str] = mapped_column(
        String(64), unique=True, nullable=False
    )
    failure_reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # Processor response (set once resolved)
    processor_transaction_id: Mapped[Optional[str]] = mapped_column(
        String(64), nullable=True
    )
    authorization_code: Mapped[Optional[str]] = mapped_column(
        String(64), nullable=True
    )
    processed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (CheckConstraint("amount >= 0", name="non_negative_amount"),)

    @property
    def is_resolved(self) -> bool:
        return self.status != TransactionStatus.PROCESSING

    def __repr__(self):
        return f"<PaymentTransaction {self.transaction_code} {self.status.value}>"


class SavedPaymentMethod(Base):
    """Reusable card reference. Only last 4 digits and display metadata are kept."""

    __tablename__ = "ordering_saved_payment_methods"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    alias: Mapped[str] = mapped_column(String(50), nullable=False)

    # Card metadata
    last4: Mapped[str] = mapped_column(String(4), nullable=False)
    network: Mapped[CardNetwork] = mapped_column(
        SAEnum(
            CardNetwork,
            values_callable=enum_values,
            name="ordering_card_network_enum",
        ),
        nullable=False,
    )
    expiry_month: Mapped[str] = mapped_column(String(2), nullable=False)
    expiry_year: Mapped[str] = mapped_column(String(2), nullable=False)
    cardholder_name: Mapped[str] = mapped_column(String(100), nullable=False)

    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default="true", nullable=False
    )  # Soft delete marker

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (Index("ix_ordering_saved_methods_user_active", "user_id", "is_active"),)

    def __repr__(self):
        return f"<SavedPaymentMethod {self.network.value} ****{self.last4}>"
