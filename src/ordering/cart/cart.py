"""Cart aggregate: the client-held list of products the customer intends to buy.

The cart lives on the customer's device, not on the server. It is persisted
as an ordered JSON list under the ``cart`` key of local storage:

    [{"productId": "6650f1...", "quantity": 2}, ...]

Lines are unique per product and always carry a positive quantity; setting
a quantity to zero removes the line instead. Stock and shop rules are
enforced by the CartStore, which consults product snapshots; the aggregate
only guards its own shape.
"""

import json

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import HasMany, Identifier, Integer

from ordering.domain import ordering


@ordering.entity(part_of="Cart")
class CartLine:
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)

    def to_record(self) -> dict:
        return {"productId": str(self.product_id), "quantity": self.quantity}


@ordering.aggregate
class Cart:
    lines = HasMany(CartLine)

    @invariant.post
    def lines_must_be_unique_per_product(self):
        product_ids = [str(line.product_id) for line in self.lines]
        if len(product_ids) != len(set(product_ids)):
            raise ValidationError({"lines": ["A product can appear only once in the cart"]})

    # -------------------------------------------------------------------
    # Factories and serialization
    # -------------------------------------------------------------------
    @classmethod
    def create(cls):
        return cls()

    @classmethod
    def from_json(cls, raw: str | None):
        """Rebuild a cart from its stored JSON text (None means empty)."""
        if raw is None:
            return cls.create()
        try:
            records = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ValidationError({"cart": [f"Stored cart is not valid JSON: {exc.msg}"]}) from exc
        return cls.from_records(records)

    @classmethod
    def from_records(cls, records):
        """Rebuild a cart from its serialized line records.

        Fails fast on anything that is not a list of
        ``{"productId", "quantity"}`` objects with positive integer
        quantities and distinct products.
        """
        if not isinstance(records, list):
            raise ValidationError({"cart": ["Stored cart must be a list of lines"]})

        seen = set()
        lines = []
        for position, record in enumerate(records):
            if not isinstance(record, dict):
                raise ValidationError({"cart": [f"Line {position} is not an object"]})
            if "productId" not in record or "quantity" not in record:
                raise ValidationError({"cart": [f"Line {position} must have productId and quantity"]})

            product_id, quantity = record["productId"], record["quantity"]
            if not isinstance(product_id, str) or not product_id:
                raise ValidationError({"cart": [f"Line {position} has an invalid productId"]})
            if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
                raise ValidationError({"cart": [f"Line {position} has an invalid quantity"]})
            if product_id in seen:
                raise ValidationError({"cart": [f"Product {product_id} appears more than once"]})

            seen.add(product_id)
            lines.append(CartLine(product_id=product_id, quantity=quantity))

        return cls(lines=lines)

    def to_records(self) -> list[dict]:
        return [line.to_record() for line in self.lines]

    def to_json(self) -> str:
        return json.dumps(self.to_records())

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def is_empty(self) -> bool:
        return not self.lines

    @property
    def product_ids(self) -> list[str]:
        return [str(line.product_id) for line in self.lines]

    def line_for(self, product_id):
        return next((line for line in self.lines if str(line.product_id) == str(product_id)), None)

    def quantity_of(self, product_id) -> int:
        line = self.line_for(product_id)
        return line.quantity if line else 0

    # -------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------
    def add_line(self, product_id, quantity: int) -> None:
        """Add ``quantity`` of a product, merging into an existing line."""
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        existing = self.line_for(product_id)
        if existing:
            existing.quantity += quantity
        else:
            self.add_lines(CartLine(product_id=str(product_id), quantity=quantity))

    def set_quantity(self, product_id, quantity: int) -> None:
        """Set a line's quantity; zero or less removes the line."""
        if quantity < 1:
            self.remove_line(product_id)
            return

        line = self.line_for(product_id)
        if line is not None:
            line.quantity = quantity

    def remove_line(self, product_id) -> bool:
        line = self.line_for(product_id)
        if line is None:
            return False
        self.remove_lines(line)
        return True

    def clear(self) -> None:
        for line in list(self.lines):
            self.remove_lines(line)
