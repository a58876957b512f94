"""Domain errors for the ordering service.

Each error is an ``HTTPException`` so the routers can let it propagate
unchanged, while direct callers can catch the specific class.
"""

from typing import Optional

from fastapi import HTTPException, status


class OrderingError(HTTPException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Request could not be processed"

    def __init__(self, detail: Optional[str] = None):
        super().__init__(status_code=self.status_code, detail=detail or self.default_detail)

    def __str__(self) -> str:
        return str(self.detail)


# ---------------------------------------------------------------------------
# Families
# ---------------------------------------------------------------------------


class NotFoundError(OrderingError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class InvalidInputError(OrderingError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid input"


class InvalidStateError(OrderingError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Operation not allowed in the current state"


class ConflictError(OrderingError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Conflict"


class AccessDenied(OrderingError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Not allowed to access this resource"


# ---------------------------------------------------------------------------
# Not found
# ---------------------------------------------------------------------------


class OrderNotFound(NotFoundError):
    default_detail = "Order not found"


class TransactionNotFound(NotFoundError):
    default_detail = "Transaction not found"


class PaymentMethodNotFound(NotFoundError):
    default_detail = "Payment method not found"


class ProductNotFound(NotFoundError):
    default_detail = "Product not found"


# ---------------------------------------------------------------------------
# Invalid input
# ---------------------------------------------------------------------------


class InvalidOrderItems(InvalidInputError):
    default_detail = "Order must contain at least one item"


class MissingDeliveryAddress(InvalidInputError):
    default_detail = "Delivery address is required for delivery orders"


class MissingCardData(InvalidInputError):
    default_detail = "Card data is required for card payments"


class InvalidCardData(InvalidInputError):
    default_detail = "Invalid card data"


class InvalidEstimate(InvalidInputError):
    default_detail = "Estimated time cannot be negative"


class InvalidStockQuantity(InvalidInputError):
    default_detail = "Stock quantity must be a positive integer"


# ---------------------------------------------------------------------------
# Invalid state
# ---------------------------------------------------------------------------


class OrderAlreadyProcessed(InvalidStateError):
    default_detail = "Order has already been processed"


class OrderFinalized(InvalidStateError):
    default_detail = "Cannot modify a finalized or cancelled order"


class OrderNotCancellable(InvalidStateError):
    default_detail = "Order cannot be cancelled in its current state"


class OrderNotEditable(InvalidStateError):
    default_detail = "Only pending orders can be edited"


class TransactionAlreadyResolved(InvalidStateError):
    default_detail = "Transaction has already been processed"


class ConcurrentModification(InvalidStateError):
    default_detail = "Order was modified concurrently, retry the operation"


# ---------------------------------------------------------------------------
# Conflicts
# ---------------------------------------------------------------------------


class DuplicateCard(ConflictError):
    default_detail = "This card is already saved"


class InvoiceAlreadyAssigned(ConflictError):
    default_detail = "Order already has an invoice number"


class InsufficientStock(OrderingError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Insufficient stock"
