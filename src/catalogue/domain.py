"""Catalogue bounded context, client side.

Holds the advisory product snapshots the storefront keeps locally and the
boundary to the remote catalog service. The catalog service owns the
authoritative product records; nothing here ever writes to it.
"""

import structlog
from protean.domain import Domain

catalogue = Domain(name="catalogue")

logger = structlog.get_logger(__name__)
