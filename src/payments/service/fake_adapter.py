"""Configurable fake payment service for development and testing.

Intents are kept in memory and confirmations are checked with the same
HMAC scheme the real service uses, so a FakeGateway configured with the same
secret produces confirmations this service accepts. When wired to an order
service fake, successful verification marks the order paid.
"""

import asyncio
from uuid import uuid4

from payments.gateway.port import to_minor_units
from payments.service.port import (
    PaymentIntent,
    PaymentRequestRejected,
    PaymentService,
    PaymentServiceUnavailable,
    PaymentVerification,
)
from payments.signatures import signature_matches, signing_secret


class FakePaymentService(PaymentService):
    """Configurable fake payment service."""

    def __init__(self, secret: str | None = None, orders=None) -> None:
        self.secret = secret if secret is not None else signing_secret()
        self.orders = orders
        self.intents: dict[str, PaymentIntent] = {}
        self.verified: dict[str, str] = {}
        self.available: bool = True
        self.reject_intents: bool = False
        self.verify_delay: float = 0.0
        self.calls: list[dict] = []

    def configure(self, available: bool = True, reject_intents: bool = False, verify_delay: float = 0.0) -> None:
        """Configure service behavior at runtime."""
        self.available = available
        self.reject_intents = reject_intents
        self.verify_delay = verify_delay

    async def create_payment_intent(self, order_id: str, amount: float, currency: str) -> PaymentIntent:
        self.calls.append(
            {"method": "create_payment_intent", "order_id": order_id, "amount": amount, "currency": currency}
        )
        if not self.available:
            raise PaymentServiceUnavailable("Payment service unavailable")
        if self.reject_intents:
            raise PaymentRequestRejected("Payment order could not be created")
        if not order_id or not amount or amount <= 0:
            raise PaymentRequestRejected("Order ID and amount are required")

        intent = PaymentIntent(
            intent_id=f"pay_{uuid4().hex[:14]}",
            order_id=str(order_id),
            amount=amount,
            currency=currency,
            amount_minor=to_minor_units(amount),
            key_id="fake_key",
            payment_record_id=uuid4().hex[:24],
        )
        self.intents[intent.intent_id] = intent
        return intent

    async def verify_payment(self, intent_id: str, provider_reference: str, signature: str) -> PaymentVerification:
        self.calls.append(
            {
                "method": "verify_payment",
                "intent_id": intent_id,
                "provider_reference": provider_reference,
                "signature": signature,
            }
        )
        if self.verify_delay:
            await asyncio.sleep(self.verify_delay)
        if not self.available:
            raise PaymentServiceUnavailable("Payment service unavailable")

        intent = self.intents.get(intent_id)
        if intent is None:
            return PaymentVerification(verified=False, reason="Payment record not found")
        if not signature_matches(intent_id, provider_reference, signature, self.secret):
            return PaymentVerification(verified=False, order_id=intent.order_id, reason="Invalid payment signature")

        self.verified[intent_id] = provider_reference
        if self.orders is not None:
            self.orders.record_payment(intent.order_id, provider_reference)
        return PaymentVerification(verified=True, order_id=intent.order_id, payment_status="paid")
