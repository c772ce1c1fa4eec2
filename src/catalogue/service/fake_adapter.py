"""In-memory fake catalog for development and testing.

Products are seeded with ``add_product``; stock and status can be changed
behind the storefront's back to simulate a stale snapshot cache.
"""

from catalogue.product.snapshot import ProductAvailability, ProductSnapshot
from catalogue.service.port import CatalogService, CatalogUnavailable, ProductFilter


class FakeCatalogService(CatalogService):
    def __init__(self) -> None:
        self.products: dict[str, ProductSnapshot] = {}
        self.available: bool = True
        self.calls: list[dict] = []

    def add_product(
        self,
        product_id: str,
        price: float,
        stock_quantity: int,
        shop_id: str = "shop-001",
        availability: str = ProductAvailability.AVAILABLE.value,
        name: str | None = None,
    ) -> ProductSnapshot:
        snapshot = ProductSnapshot(
            product_id=product_id,
            price=price,
            stock_quantity=stock_quantity,
            availability=availability,
            shop_id=shop_id,
            name=name,
        )
        self.products[str(product_id)] = snapshot
        return snapshot

    def set_stock(self, product_id: str, stock_quantity: int) -> None:
        current = self.products[str(product_id)]
        self.add_product(
            product_id,
            price=current.price,
            stock_quantity=stock_quantity,
            shop_id=current.shop_id,
            availability=current.availability,
            name=current.name,
        )

    def set_availability(self, product_id: str, availability: str) -> None:
        current = self.products[str(product_id)]
        self.add_product(
            product_id,
            price=current.price,
            stock_quantity=current.stock_quantity,
            shop_id=current.shop_id,
            availability=availability,
            name=current.name,
        )

    def remove_product(self, product_id: str) -> None:
        self.products.pop(str(product_id), None)

    def configure(self, available: bool) -> None:
        """Simulate a catalog outage when ``available`` is False."""
        self.available = available

    async def get_product(self, product_id: str) -> ProductSnapshot | None:
        self.calls.append({"method": "get_product", "product_id": product_id})
        if not self.available:
            raise CatalogUnavailable("Catalog service unavailable")
        return self.products.get(str(product_id))

    async def list_products(self, product_filter: ProductFilter | None = None) -> list[ProductSnapshot]:
        self.calls.append({"method": "list_products", "filter": product_filter})
        if not self.available:
            raise CatalogUnavailable("Catalog service unavailable")

        product_filter = product_filter or ProductFilter()
        results = []
        for snapshot in self.products.values():
            if product_filter.shop_id and str(snapshot.shop_id) != product_filter.shop_id:
                continue
            if product_filter.status and snapshot.availability != product_filter.status:
                continue
            if product_filter.product_ids and str(snapshot.product_id) not in product_filter.product_ids:
                continue
            if product_filter.search and product_filter.search.lower() not in (snapshot.name or "").lower():
                continue
            results.append(snapshot)
        return results
