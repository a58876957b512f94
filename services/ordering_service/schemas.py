"""Pydantic schemas for the ordering service."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from services.ordering_service.models import (
    CardNetwork,
    DeliveryType,
    OrderStatus,
    PaymentMethod,
    TransactionStatus,
)

# ============================================================================
# SHARED
# ============================================================================


class ActionResult(BaseModel):
    """Outcome of a mutation that reports failure instead of raising."""

    success: bool
    message: str


# ============================================================================
# ORDER SCHEMAS
# ============================================================================


class OrderItemCreate(BaseModel):
    # Quantity/price bounds are enforced by the order service so direct
    # callers get the same errors as HTTP clients.
    product_id: uuid.UUID
    name: str = Field(..., min_length=1, max_length=100)
    price: Decimal
    quantity: int
    image_url: Optional[str] = Field(None, max_length=500)


class DeliveryAddress(BaseModel):
    street: str = Field(..., min_length=1, max_length=200)
    district: str = Field(..., min_length=1, max_length=100)
    city: str = Field(..., min_length=1, max_length=100)
    notes: Optional[str] = Field(None, max_length=500)


class PaymentMetadata(BaseModel):
    method: PaymentMethod
    last4: Optional[str] = Field(None, pattern=r"^[0-9]{4}$")
    transaction_reference: Optional[str] = Field(None, max_length=64)


class OrderCreate(BaseModel):
    items: list[OrderItemCreate]
    delivery_type: DeliveryType
    delivery_address: Optional[DeliveryAddress] = None
    payment_method: PaymentMethod
    payment_metadata: Optional[PaymentMetadata] = None
    notes: Optional[str] = Field(None, max_length=500)
    estimated_minutes: Optional[int] = None


class OrderItemsUpdate(BaseModel):
    items: list[OrderItemCreate]


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class OrderEstimateUpdate(BaseModel):
    estimated_minutes: int


class OrderItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    product_id: uuid.UUID
    product_name: str
    unit_price: Decimal
    quantity: int
    line_total: Decimal
    image_url: Optional[str] = None


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    owner_id: str
    items: list[OrderItemResponse] = []
    total: Decimal
    status: OrderStatus
    delivery_type: DeliveryType
    delivery_address: Optional[DeliveryAddress] = None
    estimated_minutes: int
    notes: Optional[str] = None
    payment_method: PaymentMethod
    payment_last4: Optional[str] = None
    payment_reference: Optional[str] = None
    invoice_number: Optional[str] = None
    confirmed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class InvoiceResponse(BaseModel):
    order_id: uuid.UUID
    invoice_number: str


# ============================================================================
# PAYMENT SCHEMAS
# ============================================================================


class CardDetails(BaseModel):
    """Raw card payload. Never persisted or logged."""

    number: str = Field(..., max_length=32)
    expiry_month: str = Field(..., max_length=2)
    expiry_year: str = Field(..., max_length=2)
    cvv: str = Field(..., max_length=4)
    cardholder_name: str = Field(..., max_length=100)

    def __repr__(self) -> str:
        return "CardDetails(****)"


class PaymentRequest(BaseModel):
    method: PaymentMethod
    card: Optional[CardDetails] = None


class TransactionResolve(BaseModel):
    approved: bool
    authorization_code: Optional[str] = Field(None, max_length=64)


class PaymentTransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    order_id: uuid.UUID
    user_id: str
    method: PaymentMethod
    saved_method_id: Optional[uuid.UUID] = None
    amount: Decimal
    status: TransactionStatus
    transaction_code: str
    failure_reason: Optional[str] = None
    processor_transaction_id: Optional[str] = None
    authorization_code: Optional[str] = None
    processed_at: Optional[datetime] = None
    created_at: datetime


class PaymentResultResponse(BaseModel):
    transaction: PaymentTransactionResponse
    order: OrderResponse
    message: str


# ============================================================================
# SAVED PAYMENT METHOD SCHEMAS
# ============================================================================


class SavedPaymentMethodCreate(BaseModel):
    card: CardDetails
    alias: Optional[str] = Field(None, max_length=50)


class SavedPaymentMethodResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: str
    alias: str
    last4: str
    network: CardNetwork
    expiry_month: str
    expiry_year: str
    cardholder_name: str
    is_active: bool
    created_at: datetime


# ============================================================================
# PRODUCT SCHEMAS
# ============================================================================


class StockAdjustment(BaseModel):
    delta: int


class ProductStockResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    stock: int
    is_available: bool
