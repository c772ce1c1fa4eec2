"""REST payment service adapter (``/payments/create-order``, ``/payments/verify``)."""

import httpx
import structlog

from payments.gateway.port import to_minor_units
from payments.service.port import (
    PaymentIntent,
    PaymentRequestRejected,
    PaymentService,
    PaymentServiceUnavailable,
    PaymentVerification,
)
from shared.http import build_client, envelope_data, error_message

logger = structlog.get_logger(__name__)


class RestPaymentService(PaymentService):
    def __init__(self, base_url: str, client: httpx.AsyncClient | None = None, timeout: float | None = None):
        self.base_url = base_url
        self._client = build_client(base_url, client=client, timeout=timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _post(self, path: str, body: dict) -> httpx.Response:
        try:
            response = await self._client.post(path, json=body)
        except httpx.TransportError as exc:
            raise PaymentServiceUnavailable(f"Payment service unreachable: {exc}") from exc
        if response.status_code >= 500:
            raise PaymentServiceUnavailable(f"Payment service error: {error_message(response)}")
        return response

    @staticmethod
    def _decode(response: httpx.Response) -> dict:
        try:
            return envelope_data(response)
        except ValueError as exc:
            raise PaymentServiceUnavailable(f"Unreadable payment service response: {exc}") from exc

    async def create_payment_intent(self, order_id: str, amount: float, currency: str) -> PaymentIntent:
        response = await self._post(
            "/payments/create-order",
            {"orderId": order_id, "amount": amount, "currency": currency},
        )
        if response.status_code >= 400:
            raise PaymentRequestRejected(error_message(response))

        data = self._decode(response)
        try:
            intent_amount = float(data.get("amount", amount))
            intent_id = str(data["orderId"])
        except (KeyError, TypeError, ValueError) as exc:
            raise PaymentServiceUnavailable(f"Malformed payment intent: {exc!r}") from exc
        return PaymentIntent(
            intent_id=intent_id,
            order_id=str(order_id),
            amount=intent_amount,
            currency=data.get("currency", currency),
            amount_minor=to_minor_units(intent_amount),
            key_id=data.get("key"),
            payment_record_id=data.get("paymentId"),
        )

    async def verify_payment(self, intent_id: str, provider_reference: str, signature: str) -> PaymentVerification:
        response = await self._post(
            "/payments/verify",
            {
                "razorpay_order_id": intent_id,
                "razorpay_payment_id": provider_reference,
                "razorpay_signature": signature,
            },
        )
        # The service answers 400/404 for forged or unknown confirmations
        if response.status_code in (400, 404):
            reason = error_message(response)
            logger.warning("Payment verification refused", intent_id=intent_id, reason=reason)
            return PaymentVerification(verified=False, reason=reason)
        if response.status_code >= 400:
            raise PaymentRequestRejected(error_message(response))

        data = self._decode(response)
        order_id = data.get("orderId")
        return PaymentVerification(
            verified=True,
            order_id=str(order_id) if order_id else None,
            payment_status="paid",
        )
