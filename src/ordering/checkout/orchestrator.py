"""Checkout orchestrator: drives one CheckoutSession at a time through checkout.

Flow:
    1. Validating: reconcile the cart against freshly refreshed snapshots,
       write repairs back to the cart, snapshot the surviving lines
    2. CreatingOrder: resolve the shipping address and create the order.
       A retry of a failed order creation reuses the idempotency key and
       first looks up the order that attempt may have created
    3a. Cash on delivery: Confirmed, cart cleared
    3b. CreatingPaymentIntent: open an intent for the order's own total
    4. AwaitingGatewayResult: the gateway widget is open; its single
       report arrives through handle_gateway_event
    5. VerifyingPayment: the payment service checks the report
    6. Confirmed (cart cleared) or Failed (cart kept)

Failures end the attempt in Failed with the error's code as the reason and
are never retried automatically. Once an order exists, an attempt that does
not confirm is flagged ``payment_unresolved``.
"""

import asyncio
import contextvars
import os
from collections.abc import Callable

import structlog

from ordering.cart.store import CartStore
from ordering.cart.validator import CartValidator
from ordering.checkout.events import CheckoutStateChanged
from ordering.checkout.pricing import DeliveryPolicy
from ordering.checkout.session import TERMINAL_STATES, CheckoutSession, CheckoutState
from ordering.errors import (
    CheckoutAbandoned,
    CheckoutInProgress,
    EmptyCart,
    NoShippingAddress,
    OrderCreationFailed,
    PaymentDeclined,
    PaymentVerificationFailed,
    UnknownPaymentIntent,
)
from ordering.order.port import (
    OrderLineRequest,
    OrderRequest,
    OrderService,
    OrderServiceError,
    OrderServiceUnavailable,
    PaymentMethod,
    PlacedOrder,
)
from ordering.shipping.port import ShippingProfile, ShippingProfileError
from payments.gateway.port import (
    GatewayCallbacks,
    GatewayDismissed,
    GatewayFailed,
    GatewaySucceeded,
    IntentHandle,
    PaymentGateway,
)
from payments.service.port import PaymentService, PaymentServiceError
from shared.errors import DomainError

logger = structlog.get_logger(__name__)

DEFAULT_CURRENCY = "INR"
CANCELLED = "Cancelled"
# Past attempts kept so a retry can find the one it replaces
SESSION_HISTORY = 5
_TERMINAL_VALUES = frozenset(state.value for state in TERMINAL_STATES)


class CheckoutOrchestrator:
    def __init__(
        self,
        cart_store: CartStore,
        validator: CartValidator,
        orders: OrderService,
        payments: PaymentService,
        gateway: PaymentGateway,
        shipping: ShippingProfile,
        delivery_policy: DeliveryPolicy | None = None,
        currency: str | None = None,
    ) -> None:
        self.cart_store = cart_store
        self.validator = validator
        self.orders = orders
        self.payments = payments
        self.gateway = gateway
        self.shipping = shipping
        self.delivery_policy = delivery_policy or DeliveryPolicy()
        self.currency = currency or os.environ.get("CHECKOUT_CURRENCY", DEFAULT_CURRENCY)

        self.sessions: dict[str, CheckoutSession] = {}
        self.intent: IntentHandle | None = None
        self._session: CheckoutSession | None = None
        self._completion: asyncio.Future | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._context: contextvars.Context | None = None
        self._listeners: list[Callable[[CheckoutStateChanged], None]] = []
        self._watchers: list[asyncio.Queue] = []
        self._pending_callbacks: set[asyncio.Task] = set()

    # -------------------------------------------------------------------
    # Observation
    # -------------------------------------------------------------------
    @property
    def current_session(self) -> CheckoutSession | None:
        return self._session

    def subscribe(self, listener: Callable[[CheckoutStateChanged], None]) -> Callable[[], None]:
        """Call ``listener`` on every state change. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def watch(self):
        """Yield state changes until the next attempt reaches a terminal state."""
        queue: asyncio.Queue = asyncio.Queue()
        self._watchers.append(queue)
        try:
            while True:
                event = await queue.get()
                yield event
                if event.new_state in _TERMINAL_VALUES:
                    return
        finally:
            self._watchers.remove(queue)

    def _publish(self, session: CheckoutSession, event: CheckoutStateChanged) -> None:
        logger.info(
            "Checkout state changed",
            session_id=event.session_id,
            previous_state=event.previous_state,
            new_state=event.new_state,
            order_id=event.order_id,
            reason=event.reason,
        )
        for listener in list(self._listeners):
            listener(event)
        for queue in list(self._watchers):
            queue.put_nowait(event)
        if session.is_terminal and session is self._session and self._completion and not self._completion.done():
            self._completion.set_result(session)

    async def current_order(self) -> PlacedOrder | None:
        """Read back the order created by the current attempt, if any."""
        session = self._session
        if session is None or not session.order_id:
            return None
        return await self.orders.get_order(str(session.order_id))

    # -------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------
    async def begin_checkout(self, payment_method, notes: str = "", retry_of=None) -> CheckoutSession:
        """Run an attempt up to the gateway and return its session.

        The session comes back in AwaitingGatewayResult for gateway payment
        methods, or already terminal (Confirmed for cash on delivery, or
        Failed). Raises CheckoutInProgress while another attempt is running.
        """
        if self._session is not None and not self._session.is_terminal:
            raise CheckoutInProgress(
                "A checkout is already in progress",
                session_id=str(self._session.id),
                status=self._session.status,
            )

        self._loop = asyncio.get_running_loop()
        # Gateway reports may arrive on other threads; replay them in this context
        self._context = contextvars.copy_context()
        reused_key = self._idempotency_key_for_retry(retry_of)
        session = CheckoutSession.create(
            payment_method=PaymentMethod(payment_method).value,
            notes=notes,
            idempotency_key=reused_key,
            retry_of=str(retry_of) if retry_of else None,
        )
        self._session = session
        self._remember(session)
        self._completion = self._loop.create_future()
        self.intent = None

        try:
            await self._validate(session)
            await self._create_order(session, lookup_existing=reused_key is not None)
            if not session.uses_gateway:
                self._publish(session, session.confirm())
                await self.cart_store.clear()
                return session
            await self._open_gateway(session)
        except DomainError as exc:
            if session.is_terminal:
                raise
            self._fail(session, exc.code, exc.message)
        except asyncio.CancelledError:
            if not session.is_terminal:
                self._fail(session, CANCELLED, "Checkout was cancelled")
            raise
        except Exception as exc:
            if not session.is_terminal:
                self._fail(session, type(exc).__name__, str(exc))
            raise

        return session

    async def checkout(self, payment_method, notes: str = "", retry_of=None) -> CheckoutSession:
        """Begin an attempt and wait until it is Confirmed, Failed or Abandoned."""
        session = await self.begin_checkout(payment_method, notes=notes, retry_of=retry_of)
        return await self.wait_until_settled(session)

    async def wait_until_settled(self, session: CheckoutSession | None = None) -> CheckoutSession:
        """Wait for ``session`` (default: the current one) to become terminal.

        Cancelling the wait while the gateway is open abandons the attempt.
        Cancelling it during verification does not stop the verification.
        """
        session = session or self._session
        if session is None or session.is_terminal:
            return session
        try:
            await asyncio.shield(self._completion)
        except asyncio.CancelledError:
            if session.state == CheckoutState.AWAITING_GATEWAY_RESULT:
                self._abandon(session)
            raise
        return session

    async def handle_gateway_event(self, event, intent_id: str | None = None) -> CheckoutSession | None:
        """Feed a gateway report into the current attempt.

        Reports for an attempt that is not awaiting the gateway (duplicates,
        late arrivals) are ignored. A report naming a different intent
        raises UnknownPaymentIntent.
        """
        session = self._session
        if session is None or session.state != CheckoutState.AWAITING_GATEWAY_RESULT:
            logger.info(
                "Ignoring gateway report",
                event=type(event).__name__,
                status=session.status if session else None,
            )
            return session

        reported = intent_id or getattr(event, "intent_id", None)
        if reported and reported != session.payment_intent_id:
            raise UnknownPaymentIntent(
                "Gateway report does not match the open payment",
                intent_id=reported,
                expected_intent_id=session.payment_intent_id,
            )

        if isinstance(event, GatewaySucceeded):
            self._publish(session, session.start_verification(event.provider_reference))
            verification = asyncio.ensure_future(self._verify(session, event))
            await asyncio.shield(verification)
        elif isinstance(event, GatewayFailed):
            error = PaymentDeclined(event.reason or "Payment failed")
            self._fail(session, error.code, error.message)
        elif isinstance(event, GatewayDismissed):
            self._abandon(session)
        else:
            raise TypeError(f"Not a gateway event: {event!r}")
        return session

    async def abandon(self) -> bool:
        """Abandon an attempt waiting on the gateway. Refused once verification started."""
        session = self._session
        if session is None or session.state != CheckoutState.AWAITING_GATEWAY_RESULT:
            return False
        self._abandon(session)
        return True

    def _remember(self, session: CheckoutSession) -> None:
        self.sessions[str(session.id)] = session
        while len(self.sessions) > SESSION_HISTORY:
            self.sessions.pop(next(iter(self.sessions)))

    # -------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------
    def _idempotency_key_for_retry(self, retry_of) -> str | None:
        if not retry_of:
            return None
        previous = self.sessions.get(str(retry_of))
        if previous is None:
            return None
        # The order may exist even though its creation reported an error
        if previous.failed_in == CheckoutState.CREATING_ORDER.value:
            return previous.idempotency_key
        return None

    async def _validate(self, session: CheckoutSession) -> None:
        self._publish(session, session.start_validation())
        if self.cart_store.is_empty:
            raise EmptyCart("Your cart is empty")

        reconciled = await self.validator.reconcile(self.cart_store.lines, refresh=True)
        if reconciled.changed:
            await self.cart_store.apply_adjustments(reconciled.adjustments)
        session.record_reconciliation(reconciled.lines, reconciled.adjustments, self.delivery_policy)

        if reconciled.is_empty:
            raise EmptyCart("Nothing in your cart can be ordered right now")

    async def _resolve_shipping_address(self) -> str:
        try:
            location = await self.shipping.get_saved_location()
        except ShippingProfileError as exc:
            logger.warning("Saved location lookup failed", error=str(exc))
            location = None
        if location is not None and location.display_address:
            return location.display_address

        try:
            address = await self.shipping.get_preferred_address()
        except ShippingProfileError as exc:
            logger.warning("Profile address lookup failed", error=str(exc))
            address = None
        if address and address.strip():
            return address.strip()

        raise NoShippingAddress("Add a delivery address before checking out")

    async def _create_order(self, session: CheckoutSession, lookup_existing: bool = False) -> None:
        address = await self._resolve_shipping_address()
        self._publish(session, session.start_order_creation(address))

        request = OrderRequest(
            shop_id=str(session.shop_id),
            shipping_address=address,
            lines=tuple(OrderLineRequest(str(line.product_id), line.quantity) for line in session.lines),
            payment_method=PaymentMethod(session.payment_method),
            notes=session.notes or "",
        )
        try:
            order = None
            if lookup_existing:
                order = await self.orders.find_order(session.idempotency_key)
            if order is None:
                order = await self.orders.create_order(request, session.idempotency_key)
            else:
                logger.info("Reusing order created by an earlier attempt", order_id=order.order_id)
        except OrderServiceError as exc:
            error = OrderCreationFailed(str(exc), idempotency_key=session.idempotency_key)
            error.retryable = isinstance(exc, OrderServiceUnavailable)
            raise error from exc

        session.record_order(order.order_id, order.order_number, order.total)

    async def _open_gateway(self, session: CheckoutSession) -> None:
        self._publish(session, session.start_payment_intent())
        handle = await self.gateway.create_intent(str(session.order_id), session.amount_due, self.currency)
        self.intent = handle
        self._publish(session, session.await_gateway(handle.intent_id))
        self.gateway.open(
            handle,
            GatewayCallbacks(on_success=self._relay, on_failure=self._relay, on_dismiss=self._relay),
        )

    async def _verify(self, session: CheckoutSession, event: GatewaySucceeded) -> None:
        try:
            result = await self.payments.verify_payment(
                session.payment_intent_id, event.provider_reference, event.signature
            )
        except PaymentServiceError as exc:
            self._fail(session, PaymentVerificationFailed.code, str(exc))
            return
        except Exception as exc:
            logger.exception("Payment verification crashed", session_id=str(session.id))
            self._fail(session, PaymentVerificationFailed.code, f"{type(exc).__name__}: {exc}")
            return

        if not result.verified:
            self._fail(session, PaymentVerificationFailed.code, result.reason or "Payment could not be verified")
            return

        self._publish(session, session.confirm())
        await self.cart_store.clear()

    # -------------------------------------------------------------------
    # Gateway callbacks (any thread)
    # -------------------------------------------------------------------
    def _relay(self, event) -> None:
        self._loop.call_soon_threadsafe(self._schedule_gateway_event, event, context=self._context)

    def _schedule_gateway_event(self, event) -> None:
        task = self._loop.create_task(self.handle_gateway_event(event))
        self._pending_callbacks.add(task)
        task.add_done_callback(self._callback_done)

    def _callback_done(self, task: asyncio.Task) -> None:
        self._pending_callbacks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Gateway report could not be applied", error=str(task.exception()))

    # -------------------------------------------------------------------
    # Terminal transitions
    # -------------------------------------------------------------------
    def _fail(self, session: CheckoutSession, reason: str, detail: str | None = None) -> None:
        logger.warning("Checkout failed", session_id=str(session.id), reason=reason, detail=detail)
        self._publish(session, session.fail(reason, detail))

    def _abandon(self, session: CheckoutSession) -> None:
        self._publish(session, session.abandon(CheckoutAbandoned.code))
