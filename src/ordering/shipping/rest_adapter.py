"""REST shipping profile adapter (``GET /auth/location``, ``GET /auth/me``)."""

import httpx

from ordering.shipping.port import (
    SavedLocation,
    ShippingProfile,
    ShippingProfileError,
    ShippingProfileUnavailable,
)
from shared.http import build_client, envelope_data, error_message


class RestShippingProfile(ShippingProfile):
    def __init__(self, base_url: str, client: httpx.AsyncClient | None = None, timeout: float | None = None):
        self.base_url = base_url
        self._client = build_client(base_url, client=client, timeout=timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get(self, path: str) -> dict | None:
        try:
            response = await self._client.get(path)
        except httpx.TransportError as exc:
            raise ShippingProfileUnavailable(f"Profile service unreachable: {exc}") from exc
        if response.status_code >= 500:
            raise ShippingProfileUnavailable(f"Profile service error: {error_message(response)}")
        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise ShippingProfileError(error_message(response))
        try:
            return envelope_data(response)
        except ValueError as exc:
            raise ShippingProfileUnavailable(f"Unreadable profile response: {exc}") from exc

    async def get_saved_location(self) -> SavedLocation | None:
        data = await self._get("/auth/location")
        if not data or not data.get("location"):
            return None
        return SavedLocation.from_record(data["location"])

    async def get_preferred_address(self) -> str | None:
        data = await self._get("/auth/me")
        if not data:
            return None
        address = (data.get("user") or {}).get("address") or ""
        return address.strip() or None
