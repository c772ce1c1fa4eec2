"""Read-through cache of ProductSnapshots backed by local durable storage.

The cache holds the last product record seen for each product. Reads never
block on the network; ``fetch`` and ``refresh`` go to the catalog and fall
back to the cached copy when the catalog is down.
"""

import asyncio
import json

import structlog
from protean.exceptions import ValidationError

from catalogue.product.snapshot import ProductSnapshot
from catalogue.service.port import CatalogError, CatalogService, ProductFilter
from shared.storage.port import LocalStorage

logger = structlog.get_logger(__name__)

PRODUCTS_KEY = "products"


class ProductSnapshotCache:
    def __init__(self, storage: LocalStorage, catalog: CatalogService, key: str = PRODUCTS_KEY) -> None:
        self.storage = storage
        self.catalog = catalog
        self.key = key
        self._snapshots: dict[str, ProductSnapshot] = self._load()

    def _load(self) -> dict[str, ProductSnapshot]:
        raw = self.storage.read(self.key)
        if raw is None:
            return {}
        try:
            records = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ValidationError({self.key: [f"Stored products are not valid JSON: {exc.msg}"]}) from exc
        if not isinstance(records, list):
            raise ValidationError({self.key: ["Stored products must be a list"]})

        snapshots = {}
        for record in records:
            snapshot = ProductSnapshot.from_record(record)
            snapshots[str(snapshot.product_id)] = snapshot
        return snapshots

    def _persist(self) -> None:
        records = [snapshot.to_record() for snapshot in self._snapshots.values()]
        self.storage.write(self.key, json.dumps(records))

    def __contains__(self, product_id) -> bool:
        return str(product_id) in self._snapshots

    def __len__(self) -> int:
        return len(self._snapshots)

    def get(self, product_id: str) -> ProductSnapshot | None:
        """Cached snapshot for ``product_id``, without touching the catalog."""
        return self._snapshots.get(str(product_id))

    def all(self) -> list[ProductSnapshot]:
        return list(self._snapshots.values())

    def put(self, snapshot: ProductSnapshot) -> None:
        self._snapshots[str(snapshot.product_id)] = snapshot
        self._persist()

    def forget(self, product_id: str) -> None:
        if self._snapshots.pop(str(product_id), None) is not None:
            self._persist()

    async def fetch(self, product_id: str) -> ProductSnapshot | None:
        """Cached snapshot, loading it from the catalog on a miss."""
        snapshot = self.get(product_id)
        if snapshot is not None:
            return snapshot
        return await self.refresh(product_id)

    async def refresh(self, product_id: str) -> ProductSnapshot | None:
        """Reload one product from the catalog.

        A product the catalog no longer knows is dropped from the cache.
        When the catalog is unreachable the stale snapshot (if any) is
        returned unchanged.
        """
        try:
            snapshot = await self.catalog.get_product(str(product_id))
        except CatalogError as exc:
            logger.warning("Catalog unavailable, using cached snapshot", product_id=str(product_id), error=str(exc))
            return self.get(product_id)

        if snapshot is None:
            self.forget(product_id)
            return None

        self.put(snapshot)
        return snapshot

    async def refresh_many(self, product_ids) -> dict[str, ProductSnapshot | None]:
        product_ids = list(dict.fromkeys(str(product_id) for product_id in product_ids))
        snapshots = await asyncio.gather(*(self.refresh(product_id) for product_id in product_ids))
        return dict(zip(product_ids, snapshots, strict=True))

    async def refresh_all(self, product_filter: ProductFilter | None = None) -> list[ProductSnapshot]:
        """Replace cached entries with a catalog listing; stale data survives an outage."""
        try:
            snapshots = await self.catalog.list_products(product_filter)
        except CatalogError as exc:
            logger.warning("Catalog unavailable, listing from cache", error=str(exc))
            return self.all()

        for snapshot in snapshots:
            self._snapshots[str(snapshot.product_id)] = snapshot
        self._persist()
        logger.info("Product snapshots refreshed", count=len(snapshots))
        return snapshots
