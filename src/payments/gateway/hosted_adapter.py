"""Hosted checkout gateway.

Intents are created through the payment service; the widget itself runs in
the customer's browser and reports back through the checkout HTTP API
(``POST /checkout/gateway/...``). Opening the gateway therefore only records
the handle so the API can hand it to the UI.
"""

import structlog

from payments.gateway.port import (
    GatewayCallbacks,
    GatewayRejected,
    GatewayUnavailable,
    IntentHandle,
    PaymentGateway,
    validate_intent_request,
)
from payments.service.port import PaymentRequestRejected, PaymentService, PaymentServiceUnavailable

logger = structlog.get_logger(__name__)

# Handles kept for the UI; older ones belong to finished attempts
OPENED_HISTORY = 5


class HostedGateway(PaymentGateway):
    def __init__(self, payment_service: PaymentService) -> None:
        self.payment_service = payment_service
        self.opened: dict[str, IntentHandle] = {}

    async def create_intent(self, order_id: str, amount: float, currency: str) -> IntentHandle:
        validate_intent_request(amount, currency)
        try:
            intent = await self.payment_service.create_payment_intent(order_id, amount, currency)
        except PaymentServiceUnavailable as exc:
            raise GatewayUnavailable(str(exc), order_id=order_id) from exc
        except PaymentRequestRejected as exc:
            raise GatewayRejected(str(exc), order_id=order_id) from exc

        return IntentHandle(
            intent_id=intent.intent_id,
            order_id=intent.order_id,
            amount=intent.amount,
            amount_minor=intent.amount_minor,
            currency=intent.currency,
            key_id=intent.key_id,
        )

    def _remember(self, handle: IntentHandle) -> None:
        self.opened[handle.intent_id] = handle
        while len(self.opened) > OPENED_HISTORY:
            self.opened.pop(next(iter(self.opened)))

    def open(self, handle: IntentHandle, callbacks: GatewayCallbacks) -> None:  # noqa: ARG002
        self._remember(handle)
        logger.info(
            "Hosted payment widget opened",
            intent_id=handle.intent_id,
            order_id=handle.order_id,
            amount_minor=handle.amount_minor,
            currency=handle.currency,
        )
