"""CartStore: the single owner of the customer's cart.

Every mutation is validated against the product snapshot, applied to the
Cart aggregate and written to local storage before it returns. Mutations
are serialized with an asyncio lock so concurrent UI actions cannot
interleave a read-modify-write. If the durable write fails, the in-memory
cart is reloaded from storage and the error propagates, so memory never
runs ahead of disk.
"""

import asyncio

import structlog
from protean.exceptions import ValidationError

from catalogue.snapshots.cache import ProductSnapshotCache
from ordering.cart.cart import Cart
from ordering.cart.identifiers import normalize_identifier
from ordering.cart.validator import AdjustmentKind, CartAdjustment
from ordering.errors import InsufficientStock, MixedShopCart, ProductUnavailable
from shared.storage.port import LocalStorage

logger = structlog.get_logger(__name__)

CART_KEY = "cart"


class CartStore:
    def __init__(
        self,
        storage: LocalStorage,
        snapshots: ProductSnapshotCache,
        key: str = CART_KEY,
        strict_identifiers: bool = False,
    ) -> None:
        self.storage = storage
        self.snapshots = snapshots
        self.key = key
        self.strict_identifiers = strict_identifiers
        self._lock = asyncio.Lock()
        self._cart = self._load()

    # -------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------
    def _load(self) -> Cart:
        return Cart.from_json(self.storage.read(self.key))

    def _save(self) -> None:
        try:
            self.storage.write(self.key, self._cart.to_json())
        except Exception:
            logger.error("Cart write failed, restoring last durable state", key=self.key)
            self._cart = self._load()
            raise

    def reload(self) -> None:
        """Discard in-memory state and re-read the durable cart."""
        self._cart = self._load()

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def cart(self) -> Cart:
        return self._cart

    @property
    def lines(self) -> list[dict]:
        return self._cart.to_records()

    @property
    def is_empty(self) -> bool:
        return self._cart.is_empty

    def quantity_of(self, product_id) -> int:
        return self._cart.quantity_of(self._normalize(product_id) or product_id)

    def total(self) -> float:
        """Sum of price x quantity over lines with a cached snapshot."""
        total = 0.0
        for line in self._cart.lines:
            snapshot = self.snapshots.get(str(line.product_id))
            if snapshot is not None:
                total += snapshot.price * line.quantity
        return total

    def _normalize(self, product_id) -> str | None:
        return normalize_identifier(product_id, strict=self.strict_identifiers)

    def _cart_shop_id(self, excluding: str) -> str | None:
        for line in self._cart.lines:
            if str(line.product_id) == excluding:
                continue
            snapshot = self.snapshots.get(str(line.product_id))
            if snapshot is not None:
                return str(snapshot.shop_id)
        return None

    # -------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------
    async def add(self, product_id, quantity: int) -> None:
        """Add ``quantity`` of a product, merging into an existing line."""
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be a positive integer"]})
        normalized = self._normalize(product_id)
        if normalized is None:
            raise ValidationError({"product_id": [f"Invalid product identifier: {product_id!r}"]})

        snapshot = await self.snapshots.fetch(normalized)
        if snapshot is None or not snapshot.is_available:
            raise ProductUnavailable("Product is not available", product_id=normalized)

        async with self._lock:
            existing = self._cart.quantity_of(normalized)
            if existing + quantity > snapshot.stock_quantity:
                raise InsufficientStock(
                    f"Only {snapshot.stock_quantity} available",
                    product_id=normalized,
                    requested=existing + quantity,
                    available=snapshot.stock_quantity,
                )

            cart_shop = self._cart_shop_id(excluding=normalized)
            if cart_shop is not None and cart_shop != str(snapshot.shop_id):
                raise MixedShopCart(
                    "Cart already holds products from another shop",
                    product_id=normalized,
                    cart_shop_id=cart_shop,
                    product_shop_id=str(snapshot.shop_id),
                )

            self._cart.add_line(normalized, quantity)
            self._save()

        logger.debug("Added to cart", product_id=normalized, quantity=quantity)

    async def update_quantity(self, product_id, quantity: int) -> None:
        """Set a line's quantity. Zero or less removes the line."""
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise ValidationError({"quantity": ["Quantity must be an integer"]})
        if quantity <= 0:
            await self.remove(product_id)
            return

        normalized = self._normalize(product_id) or str(product_id)
        if self._cart.line_for(normalized) is None:
            return

        snapshot = await self.snapshots.fetch(normalized)
        if snapshot is None or not snapshot.is_available:
            raise ProductUnavailable("Product is not available", product_id=normalized)

        async with self._lock:
            if quantity > snapshot.stock_quantity:
                raise InsufficientStock(
                    f"Only {snapshot.stock_quantity} available",
                    product_id=normalized,
                    requested=quantity,
                    available=snapshot.stock_quantity,
                )
            self._cart.set_quantity(normalized, quantity)
            self._save()

    async def remove(self, product_id) -> None:
        """Remove a product's line. Removing an absent product is a no-op."""
        normalized = self._normalize(product_id) or str(product_id)
        async with self._lock:
            if self._cart.remove_line(normalized):
                self._save()

    async def clear(self) -> None:
        async with self._lock:
            self._cart.clear()
            self._save()

    async def apply_adjustments(self, adjustments) -> bool:
        """Write reconciliation repairs back to the lines that still exist.

        Returns True when the stored cart changed.
        """
        by_product: dict[str, list[CartAdjustment]] = {}
        for adjustment in adjustments:
            by_product.setdefault(adjustment.product_id, []).append(adjustment)
        if not by_product:
            return False

        async with self._lock:
            records: list[dict] = []
            positions: dict[str, dict] = {}
            for line in self._cart.lines:
                raw_id = str(line.product_id)
                key = self._normalize(raw_id) or raw_id
                # Lines naming the same product in different spellings collapse into one
                if key in positions:
                    positions[key]["quantity"] += line.quantity
                    continue
                record = {"productId": key, "quantity": line.quantity}
                positions[key] = record
                records.append(record)

            repaired = []
            for record in records:
                for adjustment in by_product.get(record["productId"], []):
                    if adjustment.kind == AdjustmentKind.DROPPED:
                        record = None
                        break
                    if adjustment.kind == AdjustmentKind.CLAMPED:
                        record["quantity"] = min(record["quantity"], adjustment.kept)
                if record is not None and record["quantity"] > 0:
                    repaired.append(record)

            if repaired == self._cart.to_records():
                return False

            self._cart = Cart.from_records(repaired)
            self._save()

        logger.info("Cart repaired after reconciliation", lines=len(repaired))
        return True
