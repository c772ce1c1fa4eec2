"""Tests for CartStore: validated, durable cart mutations."""

import asyncio
import json

import pytest
from catalogue.snapshots.cache import ProductSnapshotCache
from ordering.cart.store import CartStore
from ordering.cart.validator import AdjustmentKind, AdjustmentReason, CartAdjustment
from ordering.errors import InsufficientStock, MixedShopCart, ProductUnavailable
from protean.exceptions import ValidationError
from shared.storage.memory_adapter import MemoryStorage

CHAI = "6650f1c2a9b3e4d5f6a7b801"
BISCUITS = "6650f1c2a9b3e4d5f6a7b802"
SAMOSA = "6650f1c2a9b3e4d5f6a7b804"


class _BrokenStorage(MemoryStorage):
    def __init__(self, initial=None):
        super().__init__(initial)
        self.fail_writes = False

    def write(self, key, value):
        if self.fail_writes and key == "cart":
            raise OSError("disk full")
        super().write(key, value)


def _stored_cart(storage):
    return json.loads(storage.data["cart"])


class TestLoading:
    def test_starts_from_stored_cart(self, catalog):
        storage = MemoryStorage({"cart": json.dumps([{"productId": CHAI, "quantity": 2}])})
        store = CartStore(storage, ProductSnapshotCache(storage, catalog))
        assert store.quantity_of(CHAI) == 2

    def test_corrupt_stored_cart_fails_fast(self, catalog):
        storage = MemoryStorage({"cart": json.dumps([{"productId": CHAI, "quantity": -1}])})
        with pytest.raises(ValidationError):
            CartStore(storage, ProductSnapshotCache(storage, catalog))


class TestAdd:
    async def test_add_persists_before_returning(self, cart_store, storage):
        await cart_store.add(CHAI, 2)
        assert _stored_cart(storage) == [{"productId": CHAI, "quantity": 2}]

    async def test_add_merges_existing_line(self, cart_store, storage):
        await cart_store.add(CHAI, 2)
        await cart_store.add(CHAI, 1)
        assert _stored_cart(storage) == [{"productId": CHAI, "quantity": 3}]

    async def test_add_normalizes_identifier(self, cart_store):
        await cart_store.add(CHAI.upper(), 1)
        await cart_store.add(f" {CHAI} ", 1)
        assert cart_store.lines == [{"productId": CHAI, "quantity": 2}]

    @pytest.mark.parametrize("quantity", [0, -1, 1.5, True])
    async def test_invalid_quantity(self, cart_store, quantity):
        with pytest.raises(ValidationError):
            await cart_store.add(CHAI, quantity)
        assert cart_store.is_empty

    async def test_invalid_identifier(self, cart_store):
        with pytest.raises(ValidationError):
            await cart_store.add("not a product", 1)

    async def test_unknown_product(self, cart_store):
        with pytest.raises(ProductUnavailable):
            await cart_store.add("6650f1c2a9b3e4d5f6a7b8ff", 1)

    async def test_out_of_stock_product(self, cart_store, catalog):
        catalog.set_stock(CHAI, 0)
        with pytest.raises(ProductUnavailable):
            await cart_store.add(CHAI, 1)

    async def test_exceeding_stock_is_refused_and_cart_untouched(self, cart_store, storage):
        await cart_store.add(CHAI, 4)
        with pytest.raises(InsufficientStock) as exc:
            await cart_store.add(CHAI, 2)

        assert exc.value.context["available"] == 5
        assert exc.value.context["requested"] == 6
        assert _stored_cart(storage) == [{"productId": CHAI, "quantity": 4}]

    async def test_second_shop_is_refused(self, cart_store):
        await cart_store.add(CHAI, 1)
        with pytest.raises(MixedShopCart):
            await cart_store.add(SAMOSA, 1)
        assert cart_store.lines == [{"productId": CHAI, "quantity": 1}]

    async def test_failed_write_restores_durable_state(self, catalog):
        storage = _BrokenStorage()
        store = CartStore(storage, ProductSnapshotCache(storage, catalog))
        await store.add(CHAI, 1)
        storage.fail_writes = True

        with pytest.raises(OSError):
            await store.add(BISCUITS, 1)

        assert store.lines == [{"productId": CHAI, "quantity": 1}]

    async def test_concurrent_adds_are_serialized(self, cart_store, storage):
        await asyncio.gather(*(cart_store.add(BISCUITS, 1) for _ in range(10)))
        assert _stored_cart(storage) == [{"productId": BISCUITS, "quantity": 10}]

    async def test_concurrent_adds_cannot_overshoot_stock(self, cart_store):
        results = await asyncio.gather(*(cart_store.add(CHAI, 2) for _ in range(3)), return_exceptions=True)

        assert sum(1 for result in results if isinstance(result, InsufficientStock)) == 1
        assert cart_store.quantity_of(CHAI) == 4


class TestUpdateAndRemove:
    async def test_update_quantity(self, cart_store, storage):
        await cart_store.add(CHAI, 1)
        await cart_store.update_quantity(CHAI, 3)
        assert _stored_cart(storage) == [{"productId": CHAI, "quantity": 3}]

    async def test_update_beyond_stock(self, cart_store):
        await cart_store.add(CHAI, 1)
        with pytest.raises(InsufficientStock):
            await cart_store.update_quantity(CHAI, 6)
        assert cart_store.quantity_of(CHAI) == 1

    async def test_update_to_zero_removes(self, cart_store):
        await cart_store.add(CHAI, 1)
        await cart_store.update_quantity(CHAI, 0)
        assert cart_store.is_empty

    async def test_update_absent_product_is_noop(self, cart_store, storage):
        await cart_store.update_quantity(CHAI, 2)
        assert cart_store.is_empty
        assert storage.writes == []

    async def test_remove_is_idempotent(self, cart_store):
        await cart_store.add(CHAI, 1)
        await cart_store.remove(CHAI)
        await cart_store.remove(CHAI)
        assert cart_store.is_empty

    async def test_clear(self, cart_store, storage):
        await cart_store.add(CHAI, 1)
        await cart_store.add(BISCUITS, 2)
        await cart_store.clear()
        assert _stored_cart(storage) == []


class TestTotal:
    async def test_total_uses_cached_prices(self, cart_store):
        await cart_store.add(CHAI, 2)
        await cart_store.add(BISCUITS, 1)
        assert cart_store.total() == 105.0

    def test_lines_without_snapshot_count_zero(self, catalog):
        storage = MemoryStorage({"cart": json.dumps([{"productId": CHAI, "quantity": 2}])})
        store = CartStore(storage, ProductSnapshotCache(storage, catalog))
        assert store.total() == 0.0

    async def test_total_does_not_touch_catalog(self, cart_store, catalog):
        await cart_store.add(CHAI, 1)
        calls = len(catalog.calls)
        cart_store.total()
        assert len(catalog.calls) == calls


class TestApplyAdjustments:
    async def test_clamp_and_drop(self, cart_store, storage):
        await cart_store.add(CHAI, 4)
        await cart_store.add(BISCUITS, 2)

        changed = await cart_store.apply_adjustments(
            [
                CartAdjustment(CHAI, AdjustmentKind.CLAMPED, AdjustmentReason.INSUFFICIENT_STOCK, 4, kept=1),
                CartAdjustment(BISCUITS, AdjustmentKind.DROPPED, AdjustmentReason.UNAVAILABLE, 2),
            ]
        )

        assert changed is True
        assert _stored_cart(storage) == [{"productId": CHAI, "quantity": 1}]

    async def test_no_adjustments_is_no_change(self, cart_store, storage):
        await cart_store.add(CHAI, 1)
        writes = len(storage.writes)
        assert await cart_store.apply_adjustments([]) is False
        assert len(storage.writes) == writes

    async def test_collapses_differently_spelled_lines(self, catalog):
        records = [{"productId": CHAI.upper(), "quantity": 1}, {"productId": CHAI, "quantity": 2}]
        storage = MemoryStorage({"cart": json.dumps(records)})
        store = CartStore(storage, ProductSnapshotCache(storage, catalog))

        changed = await store.apply_adjustments(
            [CartAdjustment(CHAI, AdjustmentKind.MERGED, AdjustmentReason.DUPLICATE, 2, kept=3)]
        )

        assert changed is True
        assert store.lines == [{"productId": CHAI, "quantity": 3}]
