"""Payment service port (abstract interface).

The payment service owns payment intents and is the only party allowed to
declare a payment genuine. Client-side gateway reports are hints until
``verify_payment`` says otherwise.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


class PaymentServiceError(Exception):
    """The payment service could not complete a request."""


class PaymentServiceUnavailable(PaymentServiceError):
    """Timeout, transport failure or 5xx from the payment service."""


class PaymentRequestRejected(PaymentServiceError):
    """The payment service refused the request (4xx)."""


@dataclass(frozen=True)
class PaymentIntent:
    """A gateway-side token for an authorized, pending charge."""

    intent_id: str
    order_id: str
    amount: float
    currency: str
    amount_minor: int
    key_id: str | None = None
    payment_record_id: str | None = None


@dataclass(frozen=True)
class PaymentVerification:
    verified: bool
    order_id: str | None = None
    payment_status: str | None = None
    reason: str | None = None


class PaymentService(ABC):
    """Abstract payment service interface."""

    @abstractmethod
    async def create_payment_intent(self, order_id: str, amount: float, currency: str) -> PaymentIntent:
        """Open a payment intent for ``amount`` against an existing order."""
        ...

    @abstractmethod
    async def verify_payment(self, intent_id: str, provider_reference: str, signature: str) -> PaymentVerification:
        """Check a gateway-reported success. Never trusts the client blindly."""
        ...
