"""Tests for the httpx-backed catalog adapter."""

import httpx
import pytest
from catalogue.service.port import CatalogUnavailable, ProductFilter
from catalogue.service.rest_adapter import RestCatalogService

BASE_URL = "http://catalog.test/api"
CHAI = "6650f1c2a9b3e4d5f6a7b801"

_CHAI_RECORD = {
    "_id": CHAI,
    "productName": "Masala Chai",
    "price": 40,
    "stockQuantity": 5,
    "status": "available",
    "shopId": {"_id": "shop-a", "shopName": "Chai Point"},
}


def _service(handler):
    client = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))
    return RestCatalogService(BASE_URL, client=client)


class TestGetProduct:
    async def test_parses_enveloped_product(self):
        seen = []

        def handler(request):
            seen.append(request.url.path)
            return httpx.Response(200, json={"status": "success", "data": {"product": _CHAI_RECORD}})

        snapshot = await _service(handler).get_product(CHAI)

        assert seen == [f"/api/products/{CHAI}"]
        assert snapshot.product_id == CHAI
        assert snapshot.shop_id == "shop-a"
        assert snapshot.price == 40.0

    @pytest.mark.parametrize("status", [400, 404])
    async def test_not_found_is_none(self, status):
        def handler(request):
            return httpx.Response(status, json={"status": "error", "message": "Product not found"})

        assert await _service(handler).get_product(CHAI) is None

    async def test_server_error_is_unavailable(self):
        def handler(request):
            return httpx.Response(503, json={"status": "error", "message": "Maintenance"})

        with pytest.raises(CatalogUnavailable, match="Maintenance"):
            await _service(handler).get_product(CHAI)

    async def test_transport_error_is_unavailable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(CatalogUnavailable):
            await _service(handler).get_product(CHAI)

    async def test_malformed_product_is_none(self):
        def handler(request):
            return httpx.Response(200, json={"status": "success", "data": {"product": {"_id": CHAI}}})

        assert await _service(handler).get_product(CHAI) is None


class TestListProducts:
    async def test_sends_filter_and_skips_malformed(self):
        seen = []

        def handler(request):
            seen.append(dict(request.url.params))
            products = [_CHAI_RECORD, {"_id": "broken"}]
            return httpx.Response(200, json={"status": "success", "data": {"products": products}})

        snapshots = await _service(handler).list_products(ProductFilter(shop_id="shop-a", status="available"))

        assert seen == [{"shopId": "shop-a", "status": "available"}]
        assert [snapshot.product_id for snapshot in snapshots] == [CHAI]

    async def test_rejected_listing_is_unavailable(self):
        def handler(request):
            return httpx.Response(401, json={"status": "error", "message": "Unauthorized"})

        with pytest.raises(CatalogUnavailable):
            await _service(handler).list_products()

    async def test_non_json_listing_is_unavailable(self):
        def handler(request):
            return httpx.Response(200, text="<html>Service paused</html>", headers={"content-type": "text/html"})

        with pytest.raises(CatalogUnavailable, match="text/html"):
            await _service(handler).list_products()


class TestUnreadableAnswers:
    async def test_non_json_product_is_unavailable(self):
        def handler(request):
            return httpx.Response(200, text="<html>Service paused</html>", headers={"content-type": "text/html"})

        with pytest.raises(CatalogUnavailable, match="Unreadable"):
            await _service(handler).get_product(CHAI)

    async def test_listing_without_products_is_empty(self):
        def handler(request):
            return httpx.Response(200, json={"status": "success", "data": {"products": None}})

        assert await _service(handler).list_products() == []
