"""ProductSnapshot value object: last-known catalog data for one product.

Snapshots are advisory. They are cached locally, may already be stale when
read, and are only ever used to pre-validate carts and to display totals.
The persisted form mirrors the catalog's product record:

    {"id": "...", "price": 12.5, "stockQuantity": 4, "status": "available",
     "shopId": "...", "productName": "..."}
"""

from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import Float, Integer, String

from catalogue.domain import catalogue


class ProductAvailability(Enum):
    AVAILABLE = "available"
    OUT_OF_STOCK = "out_of_stock"
    DISCONTINUED = "discontinued"


@catalogue.value_object
class ProductSnapshot:
    product_id = String(required=True, max_length=255)
    price = Float(required=True, min_value=0.0)
    stock_quantity = Integer(required=True, min_value=0)
    availability = String(
        choices=ProductAvailability,
        default=ProductAvailability.AVAILABLE.value,
    )
    shop_id = String(required=True, max_length=255)
    name = String(max_length=255)

    @property
    def is_available(self) -> bool:
        """Sellable right now: listed as available and with stock left."""
        return self.availability == ProductAvailability.AVAILABLE.value and self.stock_quantity > 0

    @classmethod
    def from_record(cls, record):
        """Build a snapshot from a catalog product record.

        Accepts both ``id`` and Mongo-style ``_id`` keys. Raises
        ValidationError when the record is not a mapping or misses fields.
        """
        if not isinstance(record, dict):
            raise ValidationError({"product": ["Product record must be an object"]})

        # Populated responses embed the shop document instead of its id
        shop_id = record.get("shopId")
        if isinstance(shop_id, dict):
            shop_id = shop_id.get("_id") or shop_id.get("id")

        return cls(
            product_id=record.get("id") or record.get("_id"),
            price=record.get("price"),
            stock_quantity=record.get("stockQuantity"),
            availability=record.get("status") or ProductAvailability.AVAILABLE.value,
            shop_id=shop_id,
            name=record.get("productName"),
        )

    def to_record(self) -> dict:
        record = {
            "id": str(self.product_id),
            "price": self.price,
            "stockQuantity": self.stock_quantity,
            "status": self.availability,
            "shopId": str(self.shop_id),
        }
        if self.name:
            record["productName"] = self.name
        return record
