"""Payment gateway port (abstract interface).

Defines the contract every gateway adapter implements. The gateway is the
customer-facing payment widget: it is handed an intent, shows itself, and
reports back exactly one of success, failure or dismissal through the
callbacks it was opened with. Reports are relayed as-is; deciding whether a
success is genuine is the payment service's job, never the gateway's.
"""

import math
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass

from shared.errors import DomainError

SUPPORTED_CURRENCIES = frozenset({"INR", "USD", "EUR", "GBP"})


class GatewayError(DomainError):
    code = "GatewayError"


class GatewayUnavailable(GatewayError):
    """The payment service could not be reached to open an intent."""

    code = "GatewayUnavailable"
    retryable = True


class GatewayRejected(GatewayError):
    """The intent request itself is invalid (amount, currency, order)."""

    code = "GatewayRejected"


def to_minor_units(amount: float) -> int:
    """Convert a major-unit amount (rupees) to minor units (paise)."""
    return int(round(amount * 100))


def validate_intent_request(amount, currency: str) -> None:
    if not isinstance(amount, int | float) or isinstance(amount, bool) or not math.isfinite(amount):
        raise GatewayRejected("Payment amount must be a finite number", amount=amount)
    if amount <= 0:
        raise GatewayRejected("Payment amount must be positive", amount=amount)
    if currency not in SUPPORTED_CURRENCIES:
        raise GatewayRejected(f"Unsupported currency: {currency}", currency=currency)


@dataclass(frozen=True)
class IntentHandle:
    """Everything the widget needs to collect a payment."""

    intent_id: str
    order_id: str
    amount: float
    amount_minor: int
    currency: str
    key_id: str | None = None


@dataclass(frozen=True)
class GatewaySucceeded:
    intent_id: str | None
    provider_reference: str
    signature: str


@dataclass(frozen=True)
class GatewayFailed:
    intent_id: str | None
    reason: str = "Payment failed"


@dataclass(frozen=True)
class GatewayDismissed:
    intent_id: str | None = None


GatewayEvent = GatewaySucceeded | GatewayFailed | GatewayDismissed


@dataclass(frozen=True)
class GatewayCallbacks:
    """Where the widget reports its single outcome."""

    on_success: Callable[[GatewaySucceeded], None]
    on_failure: Callable[[GatewayFailed], None]
    on_dismiss: Callable[[GatewayDismissed], None]

    def dispatch(self, event: GatewayEvent) -> None:
        if isinstance(event, GatewaySucceeded):
            self.on_success(event)
        elif isinstance(event, GatewayFailed):
            self.on_failure(event)
        elif isinstance(event, GatewayDismissed):
            self.on_dismiss(event)
        else:
            raise TypeError(f"Not a gateway event: {event!r}")


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    async def create_intent(self, order_id: str, amount: float, currency: str) -> IntentHandle:
        """Open a payment intent for an order's authoritative total."""
        ...

    @abstractmethod
    def open(self, handle: IntentHandle, callbacks: GatewayCallbacks) -> None:
        """Present the widget. Outcomes arrive later, possibly on another thread."""
        ...
