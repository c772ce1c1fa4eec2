"""CheckoutSession aggregate: one attempt to turn the cart into a paid order.

A session is ephemeral. It lives in memory for the duration of one attempt,
is never persisted, and holds its own copy of the reconciled lines so that
cart edits made while the attempt is running cannot leak into it.

State Machine:
    Idle → Validating → CreatingOrder → CreatingPaymentIntent →
    AwaitingGatewayResult → VerifyingPayment → Confirmed
    CreatingOrder → Confirmed (cash on delivery)
    AwaitingGatewayResult → Abandoned (customer dismissed the gateway)
    Failed (from every non-terminal state)

Every transition raises a CheckoutStateChanged event and returns it, so the
orchestrator can publish it to listeners.
"""

import json
from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, Text

from ordering.checkout.events import CheckoutStateChanged
from ordering.domain import ordering
from ordering.order.port import PaymentMethod


class CheckoutState(Enum):
    IDLE = "Idle"
    VALIDATING = "Validating"
    CREATING_ORDER = "CreatingOrder"
    CREATING_PAYMENT_INTENT = "CreatingPaymentIntent"
    AWAITING_GATEWAY_RESULT = "AwaitingGatewayResult"
    VERIFYING_PAYMENT = "VerifyingPayment"
    CONFIRMED = "Confirmed"
    FAILED = "Failed"
    ABANDONED = "Abandoned"


_VALID_TRANSITIONS = {
    CheckoutState.IDLE: {CheckoutState.VALIDATING, CheckoutState.FAILED},
    CheckoutState.VALIDATING: {CheckoutState.CREATING_ORDER, CheckoutState.FAILED},
    CheckoutState.CREATING_ORDER: {
        CheckoutState.CREATING_PAYMENT_INTENT,
        CheckoutState.CONFIRMED,  # Cash on delivery
        CheckoutState.FAILED,
    },
    CheckoutState.CREATING_PAYMENT_INTENT: {CheckoutState.AWAITING_GATEWAY_RESULT, CheckoutState.FAILED},
    CheckoutState.AWAITING_GATEWAY_RESULT: {
        CheckoutState.VERIFYING_PAYMENT,
        CheckoutState.ABANDONED,
        CheckoutState.FAILED,
    },
    CheckoutState.VERIFYING_PAYMENT: {CheckoutState.CONFIRMED, CheckoutState.FAILED},
    CheckoutState.CONFIRMED: set(),  # Terminal
    CheckoutState.FAILED: set(),  # Terminal
    CheckoutState.ABANDONED: set(),  # Terminal
}

TERMINAL_STATES = frozenset(state for state, targets in _VALID_TRANSITIONS.items() if not targets)


@ordering.entity(part_of="CheckoutSession")
class CheckoutLine:
    """A cart line as it was reconciled when the attempt started."""

    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    shop_id = Identifier(required=True)

    @property
    def line_total(self) -> float:
        return self.unit_price * self.quantity


@ordering.aggregate
class CheckoutSession:
    status = String(choices=CheckoutState, default=CheckoutState.IDLE.value)
    lines = HasMany(CheckoutLine)
    shop_id = Identifier()
    shipping_address = String(max_length=500)
    payment_method = String(choices=PaymentMethod, default=PaymentMethod.CASH_ON_DELIVERY.value)
    notes = String(max_length=500, default="")
    idempotency_key = String(required=True, max_length=100)
    retry_of = Identifier()
    subtotal = Float(default=0.0)
    delivery_charge = Float(default=0.0)
    total = Float(default=0.0)  # Local estimate, for display only
    order_id = Identifier()
    order_number = String(max_length=100)
    order_total = Float()  # Authoritative, from the order service
    payment_intent_id = String(max_length=255)
    payment_reference = String(max_length=255)
    failure_reason = String(max_length=100)
    failure_detail = Text()
    failed_in = String(max_length=50)  # State the attempt was in when it failed
    adjustments = Text()  # JSON array of adjustment dicts
    started_at = DateTime()
    finished_at = DateTime()

    @invariant.post
    def lines_must_come_from_one_shop(self):
        shops = {str(line.shop_id) for line in self.lines}
        if len(shops) > 1 or (shops and self.shop_id and shops != {str(self.shop_id)}):
            raise ValidationError({"lines": ["A checkout cannot mix products from different shops"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, payment_method, notes="", idempotency_key=None, retry_of=None):
        method = PaymentMethod(payment_method)
        return cls(
            payment_method=method.value,
            notes=notes or "",
            idempotency_key=idempotency_key or str(uuid4()),
            retry_of=retry_of,
            adjustments=json.dumps([]),
            started_at=datetime.now(UTC),
        )

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def state(self) -> CheckoutState:
        return CheckoutState(self.status)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def uses_gateway(self) -> bool:
        return PaymentMethod(self.payment_method).uses_gateway

    @property
    def amount_due(self) -> float:
        """What the customer will be charged: the order's total once it exists."""
        return self.order_total if self.order_total is not None else self.total

    @property
    def payment_unresolved(self) -> bool:
        """An order exists but the attempt ended without confirmed payment."""
        return bool(self.order_id) and self.state in (CheckoutState.FAILED, CheckoutState.ABANDONED)

    @property
    def adjustment_list(self) -> list[dict]:
        return json.loads(self.adjustments) if self.adjustments else []

    @property
    def cart_changed(self) -> bool:
        return bool(self.adjustment_list)

    # -------------------------------------------------------------------
    # State transition helpers
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_state):
        """Validate that the current state allows transition to target."""
        current = CheckoutState(self.status)
        if target_state not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_state.value}"]})

    def _move_to(self, target_state, reason=None, detail=None):
        self._assert_can_transition(target_state)
        previous = self.status
        now = datetime.now(UTC)
        self.status = target_state.value
        if target_state in TERMINAL_STATES:
            self.finished_at = now

        event = CheckoutStateChanged(
            session_id=str(self.id),
            previous_state=previous,
            new_state=self.status,
            order_id=str(self.order_id) if self.order_id else None,
            payment_intent_id=self.payment_intent_id,
            reason=reason,
            detail=detail,
            adjustments=self.adjustments,
            occurred_at=now,
        )
        self.raise_(event)
        return event

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def start_validation(self):
        return self._move_to(CheckoutState.VALIDATING)

    def record_reconciliation(self, reconciled_lines, adjustments, delivery_policy):
        """Snapshot the reconciled lines and the local price estimate."""
        if self.state != CheckoutState.VALIDATING:
            raise ValidationError({"status": ["Lines can only be recorded while validating"]})

        for line in reconciled_lines:
            self.add_lines(
                CheckoutLine(
                    product_id=line.product_id,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    shop_id=line.shop_id,
                )
            )
        self.shop_id = reconciled_lines[0].shop_id if reconciled_lines else None
        self.subtotal = sum(line.line_total for line in self.lines)
        self.delivery_charge = delivery_policy.charge_for(self.subtotal)
        self.total = self.subtotal + self.delivery_charge
        self.adjustments = json.dumps([adjustment.to_dict() for adjustment in adjustments])

    def start_order_creation(self, shipping_address):
        self.shipping_address = shipping_address
        return self._move_to(CheckoutState.CREATING_ORDER)

    def record_order(self, order_id, order_number, order_total):
        if self.state != CheckoutState.CREATING_ORDER:
            raise ValidationError({"status": ["An order can only be recorded while creating it"]})
        self.order_id = order_id
        self.order_number = order_number
        self.order_total = order_total

    def start_payment_intent(self):
        return self._move_to(CheckoutState.CREATING_PAYMENT_INTENT)

    def await_gateway(self, payment_intent_id):
        self.payment_intent_id = payment_intent_id
        return self._move_to(CheckoutState.AWAITING_GATEWAY_RESULT)

    def start_verification(self, payment_reference):
        self.payment_reference = payment_reference
        return self._move_to(CheckoutState.VERIFYING_PAYMENT)

    def confirm(self):
        return self._move_to(CheckoutState.CONFIRMED)

    def fail(self, reason, detail=None):
        self._assert_can_transition(CheckoutState.FAILED)
        self.failed_in = self.status
        self.failure_reason = reason
        self.failure_detail = detail
        return self._move_to(CheckoutState.FAILED, reason=reason, detail=detail)

    def abandon(self, reason=CheckoutState.ABANDONED.value):
        self.failure_reason = reason
        return self._move_to(CheckoutState.ABANDONED, reason=reason)

    # -------------------------------------------------------------------
    # Presentation
    # -------------------------------------------------------------------
    def to_dict(self) -> dict:
        return {
            "sessionId": str(self.id),
            "status": self.status,
            "paymentMethod": self.payment_method,
            "shopId": str(self.shop_id) if self.shop_id else None,
            "shippingAddress": self.shipping_address,
            "lines": [
                {
                    "productId": str(line.product_id),
                    "quantity": line.quantity,
                    "unitPrice": line.unit_price,
                }
                for line in self.lines
            ],
            "subtotal": self.subtotal,
            "deliveryCharge": self.delivery_charge,
            "total": self.total,
            "amountDue": self.amount_due,
            "orderId": str(self.order_id) if self.order_id else None,
            "orderNumber": self.order_number,
            "paymentIntentId": self.payment_intent_id,
            "failureReason": self.failure_reason,
            "failureDetail": self.failure_detail,
            "adjustments": self.adjustment_list,
            "cartChanged": self.cart_changed,
            "paymentUnresolved": self.payment_unresolved,
        }
