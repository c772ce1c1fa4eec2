"""Domain events for the CheckoutSession aggregate."""

from protean.fields import DateTime, Identifier, String, Text

from ordering.domain import ordering


@ordering.event(part_of="CheckoutSession")
class CheckoutStateChanged:
    """A checkout attempt moved from one state to the next."""

    __version__ = 1

    session_id = Identifier(required=True)
    previous_state = String(max_length=50)
    new_state = String(required=True, max_length=50)
    order_id = Identifier()
    payment_intent_id = String(max_length=255)
    reason = String(max_length=100)
    detail = Text()
    adjustments = Text()  # JSON: list of {productId, kind, reason, requested, kept}
    occurred_at = DateTime(required=True)
