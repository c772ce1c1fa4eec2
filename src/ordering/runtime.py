"""Wiring for one customer's checkout: storage, caches, services, orchestrator.

Provides get_runtime() / set_runtime() / reset_runtime(). Adapters come from
their own factories, so the environment variables that select them
(CATALOG_ADAPTER, ORDER_ADAPTER, ...) apply here too.
"""

from dataclasses import dataclass

from catalogue.service.port import CatalogService
from catalogue.snapshots.cache import ProductSnapshotCache
from ordering.cart.identifiers import strict_identifiers
from ordering.cart.store import CartStore
from ordering.cart.validator import CartValidator
from ordering.checkout.orchestrator import CheckoutOrchestrator
from ordering.checkout.pricing import DeliveryPolicy
from ordering.order.port import OrderService
from ordering.shipping.port import ShippingProfile
from payments.gateway.port import PaymentGateway
from payments.service.port import PaymentService
from shared.storage.port import LocalStorage


@dataclass
class CheckoutRuntime:
    storage: LocalStorage
    catalog: CatalogService
    snapshots: ProductSnapshotCache
    cart_store: CartStore
    validator: CartValidator
    orders: OrderService
    payments: PaymentService
    gateway: PaymentGateway
    shipping: ShippingProfile
    delivery_policy: DeliveryPolicy
    orchestrator: CheckoutOrchestrator


def build_runtime(
    storage: LocalStorage,
    catalog: CatalogService,
    orders: OrderService,
    payments: PaymentService,
    gateway: PaymentGateway,
    shipping: ShippingProfile,
    delivery_policy: DeliveryPolicy | None = None,
    currency: str | None = None,
    strict: bool | None = None,
) -> CheckoutRuntime:
    """Assemble a runtime from explicit collaborators."""
    strict = strict_identifiers() if strict is None else strict
    delivery_policy = delivery_policy or DeliveryPolicy.from_env()
    snapshots = ProductSnapshotCache(storage, catalog)
    cart_store = CartStore(storage, snapshots, strict_identifiers=strict)
    validator = CartValidator(snapshots, strict_identifiers=strict)
    orchestrator = CheckoutOrchestrator(
        cart_store=cart_store,
        validator=validator,
        orders=orders,
        payments=payments,
        gateway=gateway,
        shipping=shipping,
        delivery_policy=delivery_policy,
        currency=currency,
    )
    return CheckoutRuntime(
        storage=storage,
        catalog=catalog,
        snapshots=snapshots,
        cart_store=cart_store,
        validator=validator,
        orders=orders,
        payments=payments,
        gateway=gateway,
        shipping=shipping,
        delivery_policy=delivery_policy,
        orchestrator=orchestrator,
    )


_current_runtime: CheckoutRuntime | None = None


def get_runtime() -> CheckoutRuntime:
    """Return the configured runtime, building it from the adapter factories."""
    global _current_runtime
    if _current_runtime is None:
        from catalogue.service import get_catalog_service
        from ordering.order import get_order_service
        from ordering.order.fake_adapter import FakeOrderService
        from ordering.shipping import get_shipping_profile
        from payments.gateway import get_gateway
        from payments.service import get_payment_service
        from payments.service.fake_adapter import FakePaymentService
        from shared.storage import get_storage

        orders = get_order_service()
        payments = get_payment_service()
        # Fakes share state so a verified payment marks its order paid
        if isinstance(payments, FakePaymentService) and isinstance(orders, FakeOrderService) and payments.orders is None:
            payments.orders = orders

        _current_runtime = build_runtime(
            storage=get_storage(),
            catalog=get_catalog_service(),
            orders=orders,
            payments=payments,
            gateway=get_gateway(),
            shipping=get_shipping_profile(),
        )
    return _current_runtime


def set_runtime(runtime: CheckoutRuntime) -> None:
    """Override the active runtime (useful for tests)."""
    global _current_runtime
    _current_runtime = runtime


def reset_runtime() -> None:
    """Reset to a freshly built runtime on next access."""
    global _current_runtime
    _current_runtime = None
