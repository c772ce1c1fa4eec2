"""FastAPI routes for the Ordering domain: the cart and the checkout."""

import os

from fastapi import APIRouter, HTTPException
from protean.exceptions import ValidationError

from catalogue.service.port import ProductFilter
from ordering.api.schemas import (
    AddCartItemRequest,
    CartLineView,
    CheckoutRequest,
    ConfigureGatewayRequest,
    Envelope,
    GatewayConfigResponse,
    GatewayDismissRequest,
    GatewayFailureRequest,
    GatewaySuccessRequest,
    UpdateCartItemRequest,
)
from ordering.errors import (
    CheckoutInProgress,
    InsufficientStock,
    MixedShopCart,
    ProductUnavailable,
    UnknownPaymentIntent,
)
from ordering.order.port import OrderServiceError
from ordering.runtime import CheckoutRuntime, get_runtime
from payments.gateway.fake_adapter import FakeGateway
from payments.gateway.port import GatewayDismissed, GatewayFailed, GatewaySucceeded
from shared.errors import DomainError

_STATUS_BY_ERROR = {
    ProductUnavailable: 409,
    InsufficientStock: 409,
    MixedShopCart: 409,
    CheckoutInProgress: 409,
    UnknownPaymentIntent: 409,
}


def _to_http(exc: ValidationError | DomainError) -> HTTPException:
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=422, detail=exc.messages)
    return HTTPException(status_code=_STATUS_BY_ERROR.get(type(exc), 400), detail=exc.to_dict())


def _cart_view(runtime: CheckoutRuntime) -> dict:
    lines = []
    for record in runtime.cart_store.lines:
        snapshot = runtime.snapshots.get(record["productId"])
        view = CartLineView(product_id=record["productId"], quantity=record["quantity"])
        if snapshot is not None:
            view.product_name = snapshot.name
            view.price = snapshot.price
            view.line_total = snapshot.price * record["quantity"]
            view.available = snapshot.is_available and snapshot.stock_quantity >= record["quantity"]
            view.stock_quantity = snapshot.stock_quantity
        lines.append(view.model_dump(by_alias=True))

    total = runtime.cart_store.total()
    quote = runtime.delivery_policy.quote(total)
    return {
        "items": lines,
        "itemCount": sum(record["quantity"] for record in runtime.cart_store.lines),
        "subtotal": quote["subtotal"],
        "deliveryCharge": quote["delivery_charge"],
        "total": quote["total"],
    }


def _session_payload(runtime: CheckoutRuntime) -> dict:
    orchestrator = runtime.orchestrator
    session = orchestrator.current_session
    payload = {"session": session.to_dict()}
    intent = orchestrator.intent
    if intent is not None and session.payment_intent_id == intent.intent_id:
        payload["payment"] = {
            "intentId": intent.intent_id,
            "orderId": intent.order_id,
            "amount": intent.amount,
            "amountMinor": intent.amount_minor,
            "currency": intent.currency,
            "key": intent.key_id,
        }
    return payload


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/cart", tags=["cart"])


@cart_router.get("", response_model=Envelope)
async def get_cart(refresh: bool = False) -> Envelope:
    """Return the cart; with ``?refresh=true`` its products are re-read from the catalog first."""
    runtime = get_runtime()
    if refresh and not runtime.cart_store.is_empty:
        product_ids = tuple(record["productId"] for record in runtime.cart_store.lines)
        await runtime.snapshots.refresh_all(ProductFilter(product_ids=product_ids))
    return Envelope(data=_cart_view(runtime))


@cart_router.delete("", response_model=Envelope)
async def clear_cart() -> Envelope:
    runtime = get_runtime()
    await runtime.cart_store.clear()
    return Envelope(message="Cart cleared", data=_cart_view(runtime))


@cart_router.post("/items", status_code=201, response_model=Envelope)
async def add_cart_item(body: AddCartItemRequest) -> Envelope:
    runtime = get_runtime()
    try:
        await runtime.cart_store.add(body.product_id, body.quantity)
    except (ValidationError, DomainError) as exc:
        raise _to_http(exc) from exc
    return Envelope(message="Added to cart", data=_cart_view(runtime))


@cart_router.put("/items/{product_id}", response_model=Envelope)
async def update_cart_item(product_id: str, body: UpdateCartItemRequest) -> Envelope:
    runtime = get_runtime()
    try:
        await runtime.cart_store.update_quantity(product_id, body.quantity)
    except (ValidationError, DomainError) as exc:
        raise _to_http(exc) from exc
    return Envelope(data=_cart_view(runtime))


@cart_router.delete("/items/{product_id}", response_model=Envelope)
async def remove_cart_item(product_id: str) -> Envelope:
    runtime = get_runtime()
    await runtime.cart_store.remove(product_id)
    return Envelope(data=_cart_view(runtime))


@cart_router.post("/reconcile", response_model=Envelope)
async def reconcile_cart() -> Envelope:
    """Check the cart against fresh catalog data and repair it in place."""
    runtime = get_runtime()
    reconciled = await runtime.validator.reconcile(runtime.cart_store.lines, refresh=True)
    if reconciled.changed:
        await runtime.cart_store.apply_adjustments(reconciled.adjustments)
    data = _cart_view(runtime)
    data["adjustments"] = [adjustment.to_dict() for adjustment in reconciled.adjustments]
    data["cartChanged"] = reconciled.changed
    return Envelope(data=data)


# ---------------------------------------------------------------------------
# Checkout Router
# ---------------------------------------------------------------------------
checkout_router = APIRouter(prefix="/checkout", tags=["checkout"])


@checkout_router.post("", status_code=201, response_model=Envelope)
async def begin_checkout(body: CheckoutRequest) -> Envelope:
    """Validate the cart, create the order and open the payment gateway.

    Cash on delivery comes back Confirmed. Gateway payments come back
    AwaitingGatewayResult with the intent the widget needs.
    """
    runtime = get_runtime()
    try:
        await runtime.orchestrator.begin_checkout(body.payment_method, notes=body.notes, retry_of=body.retry_of)
    except DomainError as exc:
        raise _to_http(exc) from exc
    return Envelope(data=_session_payload(runtime))


@checkout_router.get("/current", response_model=Envelope)
async def current_checkout() -> Envelope:
    runtime = get_runtime()
    if runtime.orchestrator.current_session is None:
        raise HTTPException(status_code=404, detail="No checkout in progress")
    return Envelope(data=_session_payload(runtime))


@checkout_router.get("/current/order", response_model=Envelope)
async def current_checkout_order() -> Envelope:
    """The order behind the current attempt, as the order service sees it.

    Lets the UI resolve an attempt that created an order but never
    confirmed payment.
    """
    runtime = get_runtime()
    session = runtime.orchestrator.current_session
    if session is None:
        raise HTTPException(status_code=404, detail="No checkout in progress")
    try:
        order = await runtime.orchestrator.current_order()
    except OrderServiceError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    if order is None:
        raise HTTPException(status_code=404, detail="No order was created for this checkout")
    return Envelope(
        data={
            "sessionId": str(session.id),
            "paymentUnresolved": session.payment_unresolved,
            "order": {
                "orderId": order.order_id,
                "orderNumber": order.order_number,
                "status": order.status,
                "paymentStatus": order.payment_status,
                "paid": order.is_paid,
                "total": order.total,
            },
        }
    )


@checkout_router.post("/abandon", response_model=Envelope)
async def abandon_checkout() -> Envelope:
    runtime = get_runtime()
    if runtime.orchestrator.current_session is None:
        raise HTTPException(status_code=404, detail="No checkout in progress")
    abandoned = await runtime.orchestrator.abandon()
    data = _session_payload(runtime)
    data["abandoned"] = abandoned
    return Envelope(data=data)


async def _report(event, intent_id: str | None = None) -> Envelope:
    runtime = get_runtime()
    if runtime.orchestrator.current_session is None:
        raise HTTPException(status_code=404, detail="No checkout in progress")
    try:
        await runtime.orchestrator.handle_gateway_event(event, intent_id=intent_id)
    except DomainError as exc:
        raise _to_http(exc) from exc
    return Envelope(data=_session_payload(runtime))


@checkout_router.post("/gateway/success", response_model=Envelope)
async def gateway_success(body: GatewaySuccessRequest) -> Envelope:
    """Relay the widget's success report; the payment is verified before confirming."""
    event = GatewaySucceeded(
        intent_id=body.intent_id,
        provider_reference=body.provider_reference,
        signature=body.signature,
    )
    return await _report(event)


@checkout_router.post("/gateway/failure", response_model=Envelope)
async def gateway_failure(body: GatewayFailureRequest) -> Envelope:
    return await _report(GatewayFailed(intent_id=body.intent_id, reason=body.reason))


@checkout_router.post("/gateway/dismiss", response_model=Envelope)
async def gateway_dismiss(body: GatewayDismissRequest) -> Envelope:
    return await _report(GatewayDismissed(intent_id=body.intent_id))


@checkout_router.post("/gateway/configure", response_model=GatewayConfigResponse)
async def configure_gateway(body: ConfigureGatewayRequest) -> GatewayConfigResponse:
    """Configure the FakeGateway behavior (non-production only).

    This endpoint is only available when PROTEAN_ENV is not 'production'.
    It picks the outcome the fake widget reports for the next checkout.
    """
    if os.environ.get("PROTEAN_ENV") == "production":
        raise HTTPException(status_code=403, detail="Gateway configuration not available in production")

    gateway = get_runtime().gateway
    if not isinstance(gateway, FakeGateway):
        raise HTTPException(status_code=400, detail="Gateway configuration only available for FakeGateway")

    gateway.configure(
        outcome=body.outcome,
        failure_reason=body.failure_reason,
        forge_signature=body.forge_signature,
    )
    return GatewayConfigResponse(
        gateway=type(gateway).__name__,
        outcome=gateway.outcome,
        failure_reason=gateway.failure_reason,
        forge_signature=gateway.forge_signature,
    )
