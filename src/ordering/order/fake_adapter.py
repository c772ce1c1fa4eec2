"""In-memory fake order service for development and testing.

Behaves like the marketplace backend's ``POST /orders``: every item is
checked against the (fake) catalog, prices are taken from the catalog at
purchase time, and stock is decremented once the order exists. Orders are
deduplicated by idempotency key.

Failure modes for tests:
- ``configure(fail_with=...)`` raises the given error on the next create
- ``configure(time_out_after_create=True)`` stores the order but raises
  OrderServiceUnavailable, like a response lost in transit
"""

import random
import string
import time
from dataclasses import replace
from uuid import uuid4

from catalogue.service.fake_adapter import FakeCatalogService
from ordering.checkout.pricing import DeliveryPolicy
from ordering.order.port import (
    OrderPaymentStatus,
    OrderRejected,
    OrderRequest,
    OrderService,
    OrderServiceError,
    OrderServiceUnavailable,
    PlacedOrder,
    PlacedOrderLine,
)


def _order_number() -> str:
    suffix = "".join(random.choices(string.ascii_uppercase + string.digits, k=5))
    return f"ORD-{int(time.time() * 1000)}-{suffix}"


class FakeOrderService(OrderService):
    def __init__(self, catalog: FakeCatalogService, delivery_policy: DeliveryPolicy | None = None) -> None:
        self.catalog = catalog
        self.delivery_policy = delivery_policy
        self.orders: dict[str, PlacedOrder] = {}
        self.by_key: dict[str, str] = {}
        self.fail_with: OrderServiceError | None = None
        self.time_out_after_create: bool = False
        self.calls: list[dict] = []

    def configure(self, fail_with: OrderServiceError | None = None, time_out_after_create: bool = False) -> None:
        """Configure service behavior for the next create_order call."""
        self.fail_with = fail_with
        self.time_out_after_create = time_out_after_create

    async def create_order(self, request: OrderRequest, idempotency_key: str) -> PlacedOrder:
        self.calls.append({"method": "create_order", "request": request, "idempotency_key": idempotency_key})

        if self.fail_with is not None:
            error, self.fail_with = self.fail_with, None
            raise error

        if idempotency_key in self.by_key:
            return self.orders[self.by_key[idempotency_key]]

        if not request.lines:
            raise OrderRejected("At least one item is required")

        lines = []
        subtotal = 0.0
        for line in request.lines:
            product = self.catalog.products.get(line.product_id)
            if product is None:
                raise OrderRejected(f"Product with ID {line.product_id} not found")
            if str(product.shop_id) != request.shop_id:
                raise OrderRejected(f"Product {line.product_id} does not belong to shop {request.shop_id}")
            if product.availability != "available":
                raise OrderRejected(f"Product {product.name or line.product_id} is not available")
            if product.stock_quantity < line.quantity:
                raise OrderRejected(
                    f"Insufficient stock for product {product.name or line.product_id}. "
                    f"Available: {product.stock_quantity}"
                )
            subtotal += product.price * line.quantity
            lines.append(PlacedOrderLine(line.product_id, line.quantity, product.price))

        delivery = self.delivery_policy.charge_for(subtotal) if self.delivery_policy else 0.0
        order = PlacedOrder(
            order_id=uuid4().hex[:24],
            order_number=_order_number(),
            total=subtotal + delivery,
            shop_id=request.shop_id,
            payment_method=request.payment_method.value,
            lines=tuple(lines),
        )
        self.orders[order.order_id] = order
        self.by_key[idempotency_key] = order.order_id

        for line in lines:
            current = self.catalog.products[line.product_id]
            self.catalog.set_stock(line.product_id, current.stock_quantity - line.quantity)

        if self.time_out_after_create:
            self.time_out_after_create = False
            raise OrderServiceUnavailable("Order service timed out")
        return order

    async def find_order(self, idempotency_key: str) -> PlacedOrder | None:
        self.calls.append({"method": "find_order", "idempotency_key": idempotency_key})
        order_id = self.by_key.get(idempotency_key)
        return self.orders.get(order_id) if order_id else None

    async def get_order(self, order_id: str) -> PlacedOrder | None:
        self.calls.append({"method": "get_order", "order_id": order_id})
        return self.orders.get(order_id)

    def record_payment(self, order_id: str, payment_id: str) -> None:
        """Mark an order paid, as the payment service does after verification."""
        order = self.orders[order_id]
        self.orders[order_id] = replace(order, payment_status=OrderPaymentStatus.PAID.value, payment_id=payment_id)
