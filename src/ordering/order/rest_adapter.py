"""REST order service adapter over httpx.

``POST /orders`` carries the idempotency key in an ``Idempotency-Key``
header. ``GET /orders?idempotencyKey=`` is only trusted for orders whose
stored ``idempotencyKey`` matches: a backend that ignores the parameter
returns the customer's latest orders instead.
"""

import httpx
import structlog

from ordering.order.port import (
    OrderRejected,
    OrderRequest,
    OrderService,
    OrderServiceUnavailable,
    PlacedOrder,
)
from shared.http import build_client, envelope_data, error_message

logger = structlog.get_logger(__name__)


class RestOrderService(OrderService):
    def __init__(self, base_url: str, client: httpx.AsyncClient | None = None, timeout: float | None = None):
        self.base_url = base_url
        self._client = build_client(base_url, client=client, timeout=timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TransportError as exc:
            raise OrderServiceUnavailable(f"Order service unreachable: {exc}") from exc
        if response.status_code >= 500:
            raise OrderServiceUnavailable(f"Order service error: {error_message(response)}")
        return response

    @staticmethod
    def _decode(response: httpx.Response, member: str):
        try:
            return envelope_data(response).get(member)
        except ValueError as exc:
            raise OrderServiceUnavailable(f"Unreadable order service response: {exc}") from exc

    @staticmethod
    def _parse(record: dict) -> PlacedOrder:
        try:
            return PlacedOrder.from_record(record)
        except (ValueError, TypeError, AttributeError) as exc:
            raise OrderServiceUnavailable(f"Malformed order document: {exc}") from exc

    async def create_order(self, request: OrderRequest, idempotency_key: str) -> PlacedOrder:
        response = await self._send(
            "POST",
            "/orders",
            json=request.to_payload(),
            headers={"Idempotency-Key": idempotency_key},
        )
        if response.status_code >= 400:
            message = error_message(response)
            logger.warning("Order rejected", status_code=response.status_code, message=message)
            raise OrderRejected(message)
        return self._parse(self._decode(response, "order"))

    async def find_order(self, idempotency_key: str) -> PlacedOrder | None:
        response = await self._send("GET", "/orders", params={"idempotencyKey": idempotency_key})
        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise OrderRejected(error_message(response))
        for record in self._decode(response, "orders") or []:
            if isinstance(record, dict) and record.get("idempotencyKey") == idempotency_key:
                return self._parse(record)
        return None

    async def get_order(self, order_id: str) -> PlacedOrder | None:
        response = await self._send("GET", f"/orders/{order_id}")
        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise OrderRejected(error_message(response))
        return self._parse(self._decode(response, "order"))
