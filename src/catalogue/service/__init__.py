"""Catalog service factory.

Provides get_catalog_service() / set_catalog_service() / reset_catalog_service():
- FakeCatalogService for development and testing (CATALOG_ADAPTER=fake)
- RestCatalogService against CATALOG_SERVICE_URL (CATALOG_ADAPTER=rest)
"""

import os

from catalogue.service.port import CatalogService

_current_catalog: CatalogService | None = None


def get_catalog_service() -> CatalogService:
    """Return the configured catalog service. Defaults to FakeCatalogService."""
    global _current_catalog
    if _current_catalog is None:
        adapter = os.environ.get("CATALOG_ADAPTER", "fake")
        if adapter == "fake":
            from catalogue.service.fake_adapter import FakeCatalogService

            _current_catalog = FakeCatalogService()
        elif adapter == "rest":
            from catalogue.service.rest_adapter import RestCatalogService

            _current_catalog = RestCatalogService(os.environ.get("CATALOG_SERVICE_URL", "http://localhost:5000/api"))
        else:
            raise ValueError(f"Unknown catalog adapter: {adapter}")
    return _current_catalog


def set_catalog_service(catalog: CatalogService) -> None:
    """Override the active catalog service (useful for tests)."""
    global _current_catalog
    _current_catalog = catalog


def reset_catalog_service() -> None:
    """Reset to default catalog service."""
    global _current_catalog
    _current_catalog = None
