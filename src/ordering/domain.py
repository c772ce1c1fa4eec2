"""Ordering bounded context: Shopping Cart and Checkout.

Keeps the customer's cart consistent with the catalog, turns it into an
order on the marketplace backend, and reconciles that order with the
payment gateway's asynchronous confirmation.
"""

import structlog
from protean.domain import Domain

ordering = Domain(name="ordering")

logger = structlog.get_logger(__name__)
