"""Order service factory.

Provides get_order_service() / set_order_service() / reset_order_service():
- FakeOrderService backed by the fake catalog (ORDER_ADAPTER=fake)
- RestOrderService against ORDER_SERVICE_URL (ORDER_ADAPTER=rest)
"""

import os

from ordering.order.port import OrderService

_current_service: OrderService | None = None


def get_order_service() -> OrderService:
    """Return the configured order service. Defaults to FakeOrderService."""
    global _current_service
    if _current_service is None:
        adapter = os.environ.get("ORDER_ADAPTER", "fake")
        if adapter == "fake":
            from catalogue.service import get_catalog_service
            from ordering.checkout.pricing import DeliveryPolicy
            from ordering.order.fake_adapter import FakeOrderService

            _current_service = FakeOrderService(get_catalog_service(), DeliveryPolicy.from_env())
        elif adapter == "rest":
            from ordering.order.rest_adapter import RestOrderService

            _current_service = RestOrderService(os.environ.get("ORDER_SERVICE_URL", "http://localhost:5000/api"))
        else:
            raise ValueError(f"Unknown order adapter: {adapter}")
    return _current_service


def set_order_service(service: OrderService) -> None:
    """Override the active order service (useful for tests)."""
    global _current_service
    _current_service = service


def reset_order_service() -> None:
    """Reset to default order service."""
    global _current_service
    _current_service = None
