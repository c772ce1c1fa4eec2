"""In-memory shipping profile for development and testing."""

from ordering.shipping.port import SavedLocation, ShippingProfile, ShippingProfileUnavailable


class FakeShippingProfile(ShippingProfile):
    def __init__(self, saved_location: SavedLocation | None = None, preferred_address: str | None = None) -> None:
        self.saved_location = saved_location
        self.preferred_address = preferred_address
        self.available: bool = True
        self.calls: list[str] = []

    def configure(
        self,
        saved_location: SavedLocation | None = None,
        preferred_address: str | None = None,
        available: bool = True,
    ) -> None:
        self.saved_location = saved_location
        self.preferred_address = preferred_address
        self.available = available

    async def get_saved_location(self) -> SavedLocation | None:
        self.calls.append("get_saved_location")
        if not self.available:
            raise ShippingProfileUnavailable("Profile service unavailable")
        return self.saved_location

    async def get_preferred_address(self) -> str | None:
        self.calls.append("get_preferred_address")
        if not self.available:
            raise ShippingProfileUnavailable("Profile service unavailable")
        return self.preferred_address
