"""Pydantic request/response schemas for the cart and checkout API.

These are external contracts for the storefront UI, separate from the
internal Protean aggregates. Responses use the marketplace envelope
``{"status": "success", "data": {...}}``.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

PaymentMethodName = Literal["cash_on_delivery", "credit_card", "debit_card", "upi", "net_banking"]


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------
class Envelope(BaseModel):
    status: str = "success"
    message: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------
class AddCartItemRequest(BaseModel):
    product_id: str = Field(alias="productId")
    quantity: int = Field(ge=1, default=1)

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={"examples": [{"productId": "6650f1c2a9b3e4d5f6a7b8c9", "quantity": 2}]},
    )


class UpdateCartItemRequest(BaseModel):
    """A quantity of zero or less removes the line."""

    quantity: int


class CartLineView(BaseModel):
    product_id: str = Field(serialization_alias="productId")
    quantity: int
    product_name: str | None = Field(default=None, serialization_alias="productName")
    price: float | None = None
    line_total: float = Field(default=0.0, serialization_alias="lineTotal")
    available: bool = False
    stock_quantity: int | None = Field(default=None, serialization_alias="stockQuantity")


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------
class CheckoutRequest(BaseModel):
    payment_method: PaymentMethodName = Field(alias="paymentMethod", default="cash_on_delivery")
    notes: str = Field(default="", max_length=500)
    retry_of: str | None = Field(alias="retryOf", default=None)

    model_config = ConfigDict(populate_by_name=True)


class GatewaySuccessRequest(BaseModel):
    """The hosted widget's success payload (Razorpay-style field names accepted)."""

    intent_id: str = Field(alias="razorpay_order_id")
    provider_reference: str = Field(alias="razorpay_payment_id")
    signature: str = Field(alias="razorpay_signature")

    model_config = ConfigDict(populate_by_name=True)


class GatewayFailureRequest(BaseModel):
    intent_id: str | None = None
    reason: str = "Payment failed"


class GatewayDismissRequest(BaseModel):
    intent_id: str | None = None


class ConfigureGatewayRequest(BaseModel):
    outcome: Literal["succeed", "fail", "dismiss", "hold"] = "succeed"
    failure_reason: str = "Payment declined by bank"
    forge_signature: bool = False


class GatewayConfigResponse(BaseModel):
    gateway: str
    outcome: str
    failure_reason: str
    forge_signature: bool
