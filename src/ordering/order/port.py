"""Order service port (abstract interface).

Orders are owned by the marketplace backend. The checkout only ever asks for
one to be created, looks one up, and reads back its authoritative total; it
never modifies or replaces an order once created.

``create_order`` takes an idempotency key. Repeating a call with the same key
must return the order created by the first call instead of a second one.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum


class PaymentMethod(Enum):
    CASH_ON_DELIVERY = "cash_on_delivery"
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    UPI = "upi"
    NET_BANKING = "net_banking"

    @property
    def uses_gateway(self) -> bool:
        return self is not PaymentMethod.CASH_ON_DELIVERY


class OrderPaymentStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class OrderServiceError(Exception):
    """The order service could not complete a request."""


class OrderServiceUnavailable(OrderServiceError):
    """Timeout, transport failure or 5xx from the order service."""


class OrderRejected(OrderServiceError):
    """The order service refused the order (validation, stock, unknown shop)."""


@dataclass(frozen=True)
class OrderLineRequest:
    product_id: str
    quantity: int

    def to_payload(self) -> dict:
        return {"productId": self.product_id, "quantity": self.quantity}


@dataclass(frozen=True)
class OrderRequest:
    shop_id: str
    shipping_address: str
    lines: tuple[OrderLineRequest, ...]
    payment_method: PaymentMethod = PaymentMethod.CASH_ON_DELIVERY
    notes: str = ""

    def to_payload(self) -> dict:
        return {
            "shopId": self.shop_id,
            "shippingAddress": self.shipping_address,
            "items": [line.to_payload() for line in self.lines],
            "paymentMethod": self.payment_method.value,
            "notes": self.notes,
        }


@dataclass(frozen=True)
class PlacedOrderLine:
    product_id: str
    quantity: int
    price_at_purchase: float


@dataclass(frozen=True)
class PlacedOrder:
    """The backend's view of a created order."""

    order_id: str
    order_number: str
    total: float
    shop_id: str
    payment_method: str
    status: str = "pending"
    payment_status: str = OrderPaymentStatus.PENDING.value
    payment_id: str = ""
    lines: tuple[PlacedOrderLine, ...] = field(default_factory=tuple)

    @property
    def is_paid(self) -> bool:
        return self.payment_status == OrderPaymentStatus.PAID.value

    @classmethod
    def from_record(cls, record: dict) -> "PlacedOrder":
        """Parse an order document as returned by the backend."""

        def _id(value):
            if isinstance(value, dict):
                value = value.get("_id") or value.get("id")
            return str(value) if value is not None else ""

        lines = tuple(
            PlacedOrderLine(
                product_id=_id(item.get("productId")),
                quantity=int(item.get("quantity", 0)),
                price_at_purchase=float(item.get("priceAtPurchase", 0.0)),
            )
            for item in record.get("items", [])
        )
        total = float(record.get("totalAmount", 0.0)) + float(record.get("shippingCost", 0.0) or 0.0)
        return cls(
            order_id=_id(record.get("_id") or record.get("id")),
            order_number=str(record.get("orderNumber", "")),
            total=total,
            shop_id=_id(record.get("shopId")),
            payment_method=str(record.get("paymentMethod", PaymentMethod.CASH_ON_DELIVERY.value)),
            status=str(record.get("status", "pending")),
            payment_status=str(record.get("paymentStatus", OrderPaymentStatus.PENDING.value)),
            payment_id=str(record.get("paymentId") or ""),
            lines=lines,
        )


class OrderService(ABC):
    """Abstract order service interface."""

    @abstractmethod
    async def create_order(self, request: OrderRequest, idempotency_key: str) -> PlacedOrder:
        """Create an order, or return the one already created under ``idempotency_key``."""
        ...

    @abstractmethod
    async def find_order(self, idempotency_key: str) -> PlacedOrder | None:
        """Look up the order created under ``idempotency_key``, if any."""
        ...

    @abstractmethod
    async def get_order(self, order_id: str) -> PlacedOrder | None:
        """Fetch an order by id. Returns None when it does not exist."""
        ...
