"""Cart reconciliation against product snapshots.

Reconciliation never raises for catalog trouble. It returns the subset of
lines that can actually be bought right now, each within the snapshot's
stock ceiling and all from one shop, together with one adjustment per
repair it had to make:

    invalid identifier          drop   invalid_identifier
    quantity <= 0               drop   invalid_quantity
    snapshot missing            drop   missing
    stock 0 / not available     drop   unavailable
    0 < stock < requested       clamp  insufficient_stock
    shop differs from first     drop   other_shop
    same product listed twice   merge  duplicate
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum

import structlog

from catalogue.product.snapshot import ProductSnapshot
from catalogue.snapshots.cache import ProductSnapshotCache
from ordering.cart.identifiers import normalize_identifier

logger = structlog.get_logger(__name__)


class AdjustmentKind(Enum):
    CLAMPED = "clamped"
    DROPPED = "dropped"
    MERGED = "merged"


class AdjustmentReason(Enum):
    INVALID_IDENTIFIER = "invalid_identifier"
    INVALID_QUANTITY = "invalid_quantity"
    MISSING = "missing"
    UNAVAILABLE = "unavailable"
    INSUFFICIENT_STOCK = "insufficient_stock"
    OTHER_SHOP = "other_shop"
    DUPLICATE = "duplicate"


@dataclass(frozen=True)
class CartAdjustment:
    """One repair made to the cart. ``kept`` is 0 for drops."""

    product_id: str
    kind: AdjustmentKind
    reason: AdjustmentReason
    requested: int
    kept: int = 0

    def to_dict(self) -> dict:
        return {
            "productId": self.product_id,
            "kind": self.kind.value,
            "reason": self.reason.value,
            "requested": self.requested,
            "kept": self.kept,
        }


@dataclass(frozen=True)
class ReconciledLine:
    product_id: str
    quantity: int
    snapshot: ProductSnapshot

    @property
    def unit_price(self) -> float:
        return self.snapshot.price

    @property
    def shop_id(self) -> str:
        return str(self.snapshot.shop_id)

    @property
    def line_total(self) -> float:
        return self.snapshot.price * self.quantity


@dataclass(frozen=True)
class ReconciledCart:
    lines: tuple[ReconciledLine, ...] = ()
    adjustments: tuple[CartAdjustment, ...] = field(default_factory=tuple)

    @property
    def changed(self) -> bool:
        return bool(self.adjustments)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    @property
    def shop_id(self) -> str | None:
        return self.lines[0].shop_id if self.lines else None

    @property
    def subtotal(self) -> float:
        return sum(line.line_total for line in self.lines)


def _unpack(line) -> tuple:
    """``(product_id, quantity)`` from a CartLine or a stored record."""
    if isinstance(line, dict):
        return line.get("productId", line.get("product_id")), line.get("quantity")
    return line.product_id, line.quantity


def _as_count(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        return 0
    return quantity


class CartValidator:
    def __init__(self, snapshots: ProductSnapshotCache, strict_identifiers: bool = False) -> None:
        self.snapshots = snapshots
        self.strict_identifiers = strict_identifiers

    async def reconcile(self, lines, refresh: bool = False) -> ReconciledCart:
        """Reconcile ``lines`` against current snapshots.

        With ``refresh`` every product is reloaded from the catalog first,
        as checkout must; otherwise only missing snapshots are fetched.
        """
        adjustments: list[CartAdjustment] = []
        requested: dict[str, int] = {}

        for line in lines:
            raw_id, quantity = _unpack(line)
            product_id = normalize_identifier(raw_id, strict=self.strict_identifiers)
            if product_id is None:
                adjustments.append(
                    CartAdjustment(
                        product_id=str(raw_id),
                        kind=AdjustmentKind.DROPPED,
                        reason=AdjustmentReason.INVALID_IDENTIFIER,
                        requested=_as_count(quantity),
                    )
                )
                continue
            if _as_count(quantity) <= 0:
                adjustments.append(
                    CartAdjustment(
                        product_id=product_id,
                        kind=AdjustmentKind.DROPPED,
                        reason=AdjustmentReason.INVALID_QUANTITY,
                        requested=_as_count(quantity),
                    )
                )
                continue
            if product_id in requested:
                requested[product_id] += quantity
                adjustments.append(
                    CartAdjustment(
                        product_id=product_id,
                        kind=AdjustmentKind.MERGED,
                        reason=AdjustmentReason.DUPLICATE,
                        requested=quantity,
                        kept=requested[product_id],
                    )
                )
                continue
            requested[product_id] = quantity

        snapshots = await self._lookup(list(requested), refresh)

        kept: list[ReconciledLine] = []
        shop_id = None
        for product_id, quantity in requested.items():
            snapshot = snapshots.get(product_id)
            if snapshot is None:
                adjustments.append(
                    CartAdjustment(product_id, AdjustmentKind.DROPPED, AdjustmentReason.MISSING, quantity)
                )
                continue
            if not snapshot.is_available:
                adjustments.append(
                    CartAdjustment(product_id, AdjustmentKind.DROPPED, AdjustmentReason.UNAVAILABLE, quantity)
                )
                continue
            if shop_id is not None and str(snapshot.shop_id) != shop_id:
                adjustments.append(
                    CartAdjustment(product_id, AdjustmentKind.DROPPED, AdjustmentReason.OTHER_SHOP, quantity)
                )
                continue

            if snapshot.stock_quantity < quantity:
                adjustments.append(
                    CartAdjustment(
                        product_id,
                        AdjustmentKind.CLAMPED,
                        AdjustmentReason.INSUFFICIENT_STOCK,
                        quantity,
                        kept=snapshot.stock_quantity,
                    )
                )
                quantity = snapshot.stock_quantity

            shop_id = shop_id or str(snapshot.shop_id)
            kept.append(ReconciledLine(product_id=product_id, quantity=quantity, snapshot=snapshot))

        if adjustments:
            logger.info(
                "Cart reconciled with adjustments",
                kept=len(kept),
                adjustments=[adjustment.to_dict() for adjustment in adjustments],
            )
        return ReconciledCart(lines=tuple(kept), adjustments=tuple(adjustments))

    async def _lookup(self, product_ids: list[str], refresh: bool) -> dict:
        if refresh:
            return await self.snapshots.refresh_many(product_ids)
        snapshots = await asyncio.gather(*(self.snapshots.fetch(product_id) for product_id in product_ids))
        return dict(zip(product_ids, snapshots, strict=True))
