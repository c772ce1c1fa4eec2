"""Configurable fake payment gateway for development and testing.

This adapter simulates the customer-facing widget without a browser. It
creates real intents through the payment service (so confirmations can be
verified) and then plays back a configured outcome:

- ``succeed``: reports a success signed with the merchant secret
- ``fail``: reports a declined payment
- ``dismiss``: reports that the customer closed the widget
- ``hold``: reports nothing until ``complete()`` is called

Outcomes are delivered on the next event loop iteration, like a real widget
reporting back after ``open`` has returned.
"""

import asyncio
from uuid import uuid4

from payments.gateway.hosted_adapter import HostedGateway
from payments.gateway.port import (
    GatewayCallbacks,
    GatewayDismissed,
    GatewayFailed,
    GatewaySucceeded,
    IntentHandle,
)
from payments.service.port import PaymentService
from payments.signatures import sign, signing_secret

OUTCOMES = ("succeed", "fail", "dismiss", "hold")


class FakeGateway(HostedGateway):
    """Configurable fake payment gateway."""

    def __init__(self, payment_service: PaymentService, secret: str | None = None) -> None:
        super().__init__(payment_service)
        self.secret = secret if secret is not None else signing_secret()
        self.outcome: str = "succeed"
        self.failure_reason: str = "Payment declined by bank"
        self.forge_signature: bool = False
        self.held: dict[str, tuple[IntentHandle, GatewayCallbacks]] = {}
        self.calls: list[dict] = []

    def configure(self, outcome: str = "succeed", failure_reason: str = "Payment declined by bank", forge_signature: bool = False) -> None:
        """Configure gateway behavior at runtime."""
        if outcome not in OUTCOMES:
            raise ValueError(f"Unknown gateway outcome: {outcome}")
        self.outcome = outcome
        self.failure_reason = failure_reason
        self.forge_signature = forge_signature

    async def create_intent(self, order_id: str, amount: float, currency: str) -> IntentHandle:
        self.calls.append({"method": "create_intent", "order_id": order_id, "amount": amount, "currency": currency})
        return await super().create_intent(order_id, amount, currency)

    def open(self, handle: IntentHandle, callbacks: GatewayCallbacks) -> None:
        self.calls.append({"method": "open", "intent_id": handle.intent_id, "outcome": self.outcome})
        self._remember(handle)
        for intent_id in [key for key in self.held if key not in self.opened]:
            del self.held[intent_id]
        if self.outcome == "hold":
            self.held[handle.intent_id] = (handle, callbacks)
            return
        event = self.event_for(handle.intent_id, self.outcome)
        asyncio.get_running_loop().call_soon(callbacks.dispatch, event)

    def event_for(self, intent_id: str, outcome: str):
        """Build the event the widget would report for ``outcome``."""
        if outcome == "succeed":
            reference = f"pay_ref_{uuid4().hex[:12]}"
            signature = "forged" if self.forge_signature else sign(intent_id, reference, self.secret)
            return GatewaySucceeded(intent_id=intent_id, provider_reference=reference, signature=signature)
        if outcome == "fail":
            return GatewayFailed(intent_id=intent_id, reason=self.failure_reason)
        if outcome == "dismiss":
            return GatewayDismissed(intent_id=intent_id)
        raise ValueError(f"Outcome {outcome!r} produces no event")

    def complete(self, intent_id: str, outcome: str = "succeed") -> None:
        """Release a held intent with ``outcome``."""
        _, callbacks = self.held.pop(intent_id)
        callbacks.dispatch(self.event_for(intent_id, outcome))
