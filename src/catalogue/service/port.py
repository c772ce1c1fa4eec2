"""Catalog service port (abstract interface).

The catalog service is eventually consistent: a product fetched a moment
ago may already be stale. Callers treat every answer as advisory.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from catalogue.product.snapshot import ProductSnapshot


class CatalogError(Exception):
    """The catalog service could not answer."""


class CatalogUnavailable(CatalogError):
    """Transport failure, timeout or server error talking to the catalog."""


@dataclass(frozen=True)
class ProductFilter:
    """Query for ``list_products``; unset fields do not filter."""

    shop_id: str | None = None
    status: str | None = None
    search: str | None = None
    product_ids: tuple[str, ...] = ()

    def to_params(self) -> dict:
        params = {}
        if self.shop_id:
            params["shopId"] = self.shop_id
        if self.status:
            params["status"] = self.status
        if self.search:
            params["search"] = self.search
        if self.product_ids:
            params["ids"] = ",".join(self.product_ids)
        return params


class CatalogService(ABC):
    """Abstract catalog service interface."""

    @abstractmethod
    async def get_product(self, product_id: str) -> ProductSnapshot | None:
        """Fetch one product. Returns None when the catalog does not know it."""
        ...

    @abstractmethod
    async def list_products(self, product_filter: ProductFilter | None = None) -> list[ProductSnapshot]:
        """List products matching ``product_filter``."""
        ...
