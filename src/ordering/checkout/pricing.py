"""Local delivery pricing used for the checkout estimate.

The order service computes the authoritative total; this policy only lets
the UI show a figure before the order exists. The marketplace charges a flat
delivery fee on small orders and ships free above a threshold.
"""

import os

from protean.fields import Float

from ordering.domain import ordering

DEFAULT_FREE_DELIVERY_THRESHOLD = 100.0
DEFAULT_DELIVERY_CHARGE = 30.0


@ordering.value_object
class DeliveryPolicy:
    free_delivery_threshold = Float(default=DEFAULT_FREE_DELIVERY_THRESHOLD, min_value=0.0)
    flat_charge = Float(default=DEFAULT_DELIVERY_CHARGE, min_value=0.0)

    @classmethod
    def from_env(cls):
        return cls(
            free_delivery_threshold=float(
                os.environ.get("FREE_DELIVERY_THRESHOLD", DEFAULT_FREE_DELIVERY_THRESHOLD)
            ),
            flat_charge=float(os.environ.get("DELIVERY_CHARGE", DEFAULT_DELIVERY_CHARGE)),
        )

    def charge_for(self, subtotal: float) -> float:
        if subtotal <= 0:
            return 0.0
        return self.flat_charge if subtotal < self.free_delivery_threshold else 0.0

    def quote(self, subtotal: float) -> dict:
        delivery_charge = self.charge_for(subtotal)
        return {
            "subtotal": subtotal,
            "delivery_charge": delivery_charge,
            "total": subtotal + delivery_charge,
        }
