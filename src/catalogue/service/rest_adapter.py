"""REST catalog adapter talking to the marketplace products API over httpx."""

import httpx
import structlog
from protean.exceptions import ValidationError

from catalogue.product.snapshot import ProductSnapshot
from catalogue.service.port import CatalogService, CatalogUnavailable, ProductFilter
from shared.http import build_client, envelope_data, error_message

logger = structlog.get_logger(__name__)


class RestCatalogService(CatalogService):
    """Reads products from ``GET /products/{id}`` and ``GET /products``."""

    def __init__(self, base_url: str, client: httpx.AsyncClient | None = None, timeout: float | None = None):
        self.base_url = base_url
        self._client = build_client(base_url, client=client, timeout=timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get(self, path: str, params: dict | None = None) -> httpx.Response:
        try:
            response = await self._client.get(path, params=params)
        except httpx.TransportError as exc:
            raise CatalogUnavailable(f"Catalog service unreachable: {exc}") from exc
        if response.status_code >= 500:
            raise CatalogUnavailable(f"Catalog service error: {error_message(response)}")
        return response

    @staticmethod
    def _decode(response: httpx.Response) -> dict:
        try:
            return envelope_data(response)
        except ValueError as exc:
            raise CatalogUnavailable(f"Unreadable catalog response: {exc}") from exc

    async def get_product(self, product_id: str) -> ProductSnapshot | None:
        response = await self._get(f"/products/{product_id}")
        if response.status_code in (400, 404):
            return None
        if response.status_code >= 400:
            raise CatalogUnavailable(f"Catalog rejected lookup: {error_message(response)}")

        data = self._decode(response)
        record = data.get("product", data)
        try:
            return ProductSnapshot.from_record(record)
        except ValidationError as exc:
            logger.warning("Catalog returned a malformed product", product_id=product_id, errors=exc.messages)
            return None

    async def list_products(self, product_filter: ProductFilter | None = None) -> list[ProductSnapshot]:
        params = (product_filter or ProductFilter()).to_params()
        response = await self._get("/products", params=params)
        if response.status_code >= 400:
            raise CatalogUnavailable(f"Catalog rejected listing: {error_message(response)}")

        snapshots = []
        for record in self._decode(response).get("products") or []:
            try:
                snapshots.append(ProductSnapshot.from_record(record))
            except ValidationError as exc:
                logger.warning("Skipping malformed product in listing", errors=exc.messages)
        return snapshots
