"""Tests for cart reconciliation against product snapshots."""

import httpx
import pytest
from catalogue.service.rest_adapter import RestCatalogService
from catalogue.snapshots.cache import ProductSnapshotCache
from ordering.cart.validator import AdjustmentKind, AdjustmentReason, CartValidator
from shared.storage.memory_adapter import MemoryStorage

CHAI = "6650f1c2a9b3e4d5f6a7b801"
BISCUITS = "6650f1c2a9b3e4d5f6a7b802"
KETTLE = "6650f1c2a9b3e4d5f6a7b803"
SAMOSA = "6650f1c2a9b3e4d5f6a7b804"


def _reasons(reconciled):
    return [(adjustment.product_id, adjustment.kind, adjustment.reason) for adjustment in reconciled.adjustments]


class TestCleanCart:
    async def test_nothing_to_repair(self, validator):
        reconciled = await validator.reconcile(
            [{"productId": CHAI, "quantity": 2}, {"productId": BISCUITS, "quantity": 1}]
        )

        assert reconciled.changed is False
        assert [(line.product_id, line.quantity) for line in reconciled.lines] == [(CHAI, 2), (BISCUITS, 1)]
        assert reconciled.shop_id == "shop-a"
        assert reconciled.subtotal == 105.0

    async def test_accepts_cart_lines(self, validator, cart_store):
        await cart_store.add(CHAI, 1)
        reconciled = await validator.reconcile(cart_store.cart.lines)
        assert reconciled.lines[0].product_id == CHAI

    async def test_empty_cart(self, validator):
        reconciled = await validator.reconcile([])
        assert reconciled.is_empty
        assert reconciled.changed is False
        assert reconciled.shop_id is None


class TestRepairs:
    async def test_clamps_to_stock(self, validator):
        reconciled = await validator.reconcile([{"productId": CHAI, "quantity": 8}])

        assert reconciled.lines[0].quantity == 5
        [adjustment] = reconciled.adjustments
        assert adjustment.kind == AdjustmentKind.CLAMPED
        assert adjustment.reason == AdjustmentReason.INSUFFICIENT_STOCK
        assert (adjustment.requested, adjustment.kept) == (8, 5)

    async def test_drops_unavailable(self, validator, catalog):
        catalog.set_availability(KETTLE, "discontinued")
        reconciled = await validator.reconcile([{"productId": KETTLE, "quantity": 1}])

        assert reconciled.is_empty
        assert _reasons(reconciled) == [(KETTLE, AdjustmentKind.DROPPED, AdjustmentReason.UNAVAILABLE)]

    async def test_drops_zero_stock(self, validator, catalog):
        catalog.set_stock(KETTLE, 0)
        reconciled = await validator.reconcile([{"productId": KETTLE, "quantity": 1}])
        assert _reasons(reconciled) == [(KETTLE, AdjustmentKind.DROPPED, AdjustmentReason.UNAVAILABLE)]

    async def test_drops_missing(self, validator):
        missing = "6650f1c2a9b3e4d5f6a7b8ff"
        reconciled = await validator.reconcile([{"productId": missing, "quantity": 1}])
        assert _reasons(reconciled) == [(missing, AdjustmentKind.DROPPED, AdjustmentReason.MISSING)]

    @pytest.mark.parametrize("product_id", [None, "", "two words", 3.5])
    async def test_drops_invalid_identifiers(self, validator, product_id):
        reconciled = await validator.reconcile([{"productId": product_id, "quantity": 1}])
        assert reconciled.adjustments[0].reason == AdjustmentReason.INVALID_IDENTIFIER
        assert reconciled.is_empty

    @pytest.mark.parametrize("quantity", [0, -2, "3", None])
    async def test_drops_invalid_quantities(self, validator, quantity):
        reconciled = await validator.reconcile([{"productId": CHAI, "quantity": quantity}])
        assert reconciled.adjustments[0].reason == AdjustmentReason.INVALID_QUANTITY
        assert reconciled.is_empty

    async def test_drops_products_from_a_second_shop(self, validator):
        reconciled = await validator.reconcile(
            [{"productId": CHAI, "quantity": 1}, {"productId": SAMOSA, "quantity": 1}]
        )

        assert [line.product_id for line in reconciled.lines] == [CHAI]
        assert _reasons(reconciled) == [(SAMOSA, AdjustmentKind.DROPPED, AdjustmentReason.OTHER_SHOP)]

    async def test_first_available_line_decides_the_shop(self, validator, catalog):
        catalog.set_stock(CHAI, 0)
        reconciled = await validator.reconcile(
            [{"productId": CHAI, "quantity": 1}, {"productId": SAMOSA, "quantity": 1}]
        )
        assert reconciled.shop_id == "shop-b"

    async def test_merges_identifiers_that_normalize_alike(self, validator):
        reconciled = await validator.reconcile(
            [{"productId": CHAI.upper(), "quantity": 1}, {"productId": CHAI, "quantity": 2}]
        )

        assert [(line.product_id, line.quantity) for line in reconciled.lines] == [(CHAI, 3)]
        [merge] = reconciled.adjustments
        assert merge.kind == AdjustmentKind.MERGED
        assert merge.kept == 3

    async def test_merged_quantity_is_then_clamped(self, validator):
        reconciled = await validator.reconcile(
            [{"productId": CHAI, "quantity": 3}, {"productId": CHAI.upper(), "quantity": 4}]
        )
        assert reconciled.lines[0].quantity == 5
        assert [adjustment.kind for adjustment in reconciled.adjustments] == [
            AdjustmentKind.MERGED,
            AdjustmentKind.CLAMPED,
        ]

    async def test_kept_lines_respect_stock_and_shop(self, validator, catalog):
        catalog.set_stock(BISCUITS, 1)
        reconciled = await validator.reconcile(
            [
                {"productId": CHAI, "quantity": 9},
                {"productId": BISCUITS, "quantity": 4},
                {"productId": SAMOSA, "quantity": 1},
                {"productId": "bad id", "quantity": 1},
            ]
        )

        for line in reconciled.lines:
            assert line.quantity <= line.snapshot.stock_quantity
            assert line.shop_id == "shop-a"
        assert len(reconciled.adjustments) == 4


class TestSnapshotFreshness:
    async def test_without_refresh_uses_cached_snapshot(self, validator, snapshots, catalog):
        await snapshots.fetch(CHAI)
        catalog.set_stock(CHAI, 1)

        reconciled = await validator.reconcile([{"productId": CHAI, "quantity": 3}])
        assert reconciled.changed is False

    async def test_refresh_sees_new_stock(self, validator, snapshots, catalog):
        await snapshots.fetch(CHAI)
        catalog.set_stock(CHAI, 1)

        reconciled = await validator.reconcile([{"productId": CHAI, "quantity": 3}], refresh=True)
        assert reconciled.lines[0].quantity == 1

    async def test_catalog_outage_falls_back_to_cache(self, validator, snapshots, catalog):
        await snapshots.fetch(CHAI)
        catalog.configure(available=False)

        reconciled = await validator.reconcile([{"productId": CHAI, "quantity": 2}], refresh=True)
        assert reconciled.lines[0].quantity == 2

    async def test_catalog_outage_without_cache_drops_as_missing(self, validator, catalog):
        catalog.configure(available=False)
        reconciled = await validator.reconcile([{"productId": CHAI, "quantity": 2}], refresh=True)
        assert _reasons(reconciled) == [(CHAI, AdjustmentKind.DROPPED, AdjustmentReason.MISSING)]

    async def test_non_json_catalog_answer_falls_back_to_cache(self, snapshots, storage):
        await snapshots.fetch(CHAI)

        def handler(request):
            return httpx.Response(200, text="<html>Service paused</html>", headers={"content-type": "text/html"})

        client = httpx.AsyncClient(base_url="http://catalog.test/api", transport=httpx.MockTransport(handler))
        catalog = RestCatalogService("http://catalog.test/api", client=client)
        validator = CartValidator(ProductSnapshotCache(storage, catalog))

        reconciled = await validator.reconcile([{"productId": CHAI, "quantity": 2}], refresh=True)

        assert reconciled.changed is False
        assert reconciled.lines[0].quantity == 2

class TestStrictIdentifiers:
    async def test_tokens_are_invalid_in_strict_mode(self, catalog):
        catalog.add_product("sku-1", price=10.0, stock_quantity=5, shop_id="shop-a")
        storage = MemoryStorage()
        lenient = CartValidator(ProductSnapshotCache(storage, catalog))
        strict = CartValidator(ProductSnapshotCache(storage, catalog), strict_identifiers=True)

        assert (await lenient.reconcile([{"productId": "sku-1", "quantity": 1}])).changed is False
        strict_result = await strict.reconcile([{"productId": "sku-1", "quantity": 1}])
        assert strict_result.adjustments[0].reason == AdjustmentReason.INVALID_IDENTIFIER
