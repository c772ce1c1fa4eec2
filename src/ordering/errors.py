"""Typed errors raised by the cart and checkout flows.

Cart errors are raised synchronously to the caller and leave the cart
untouched. Checkout errors end an attempt in ``Failed`` with the error's
``code`` as the failure reason. Gateway errors live with the gateway port
(``payments.gateway.port``) and are re-exported here for convenience.
"""

from payments.gateway.port import GatewayRejected, GatewayUnavailable
from shared.errors import DomainError

__all__ = [
    "CheckoutAbandoned",
    "CheckoutInProgress",
    "EmptyCart",
    "GatewayRejected",
    "GatewayUnavailable",
    "InsufficientStock",
    "MixedShopCart",
    "NoShippingAddress",
    "OrderCreationFailed",
    "PaymentDeclined",
    "PaymentVerificationFailed",
    "ProductUnavailable",
    "UnknownPaymentIntent",
]


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------
class EmptyCart(DomainError):
    code = "EmptyCart"


class ProductUnavailable(DomainError):
    code = "ProductUnavailable"


class InsufficientStock(DomainError):
    code = "InsufficientStock"


class MixedShopCart(DomainError):
    """The product comes from a different shop than the rest of the cart."""

    code = "MixedShopCart"


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------
class NoShippingAddress(DomainError):
    code = "NoShippingAddress"


class CheckoutInProgress(DomainError):
    code = "CheckoutInProgress"


class OrderCreationFailed(DomainError):
    code = "OrderCreationFailed"


class PaymentDeclined(DomainError):
    code = "PaymentDeclined"


class PaymentVerificationFailed(DomainError):
    code = "PaymentVerificationFailed"


class CheckoutAbandoned(DomainError):
    code = "Abandoned"


class UnknownPaymentIntent(DomainError):
    """A gateway report names an intent this checkout never opened."""

    code = "UnknownPaymentIntent"
