"""Pydantic request/response schemas for the Ordering API.

These are external contracts, kept separate from the internal models.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Cart Request Schemas
# ---------------------------------------------------------------------------
class AddToCartRequest(BaseModel):
    product_id: str
    # Validated by the cart service so the error names the quantity
    quantity: int = 1

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "product_id": "prod-001",
                    "quantity": 2,
                }
            ]
        }
    }


class UpdateCartQuantityRequest(BaseModel):
    quantity: int


# ---------------------------------------------------------------------------
# Order Request Schemas
# ---------------------------------------------------------------------------
class PlaceOrderRequest(BaseModel):
    phone: str = Field(max_length=32)
    address: str = Field(max_length=1000)
    idempotency_key: str | None = Field(default=None, max_length=255)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "phone": "+91-98765-43210",
                    "address": "12 MG Road, Bengaluru 560001",
                    "idempotency_key": "checkout-7f3a",
                }
            ]
        }
    }


class UpdateOrderStatusRequest(BaseModel):
    status: str


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class StatusResponse(BaseModel):
    status: str = "ok"


class CartLineResponse(BaseModel):
    line_id: str
    product_id: str
    quantity: int


class ClearCartResponse(BaseModel):
    lines_removed: int


class OrderLineResponse(BaseModel):
    id: str
    product_id: str
    product_name: str
    quantity: int
    price_at_purchase: float
    line_total: float


class OrderResponse(BaseModel):
    order_id: str
    user_id: str
    status: str
    subtotal: float
    shipping_cost: float
    total_amount: float
    currency: str
    shipping_address: str
    phone: str
    created_at: datetime | None = None
    lines: list[OrderLineResponse] = []

    @classmethod
    def from_order(cls, order) -> "OrderResponse":
        return cls(
            order_id=str(order.id),
            user_id=str(order.user_id),
            status=order.status,
            subtotal=order.subtotal,
            shipping_cost=order.shipping_cost,
            total_amount=order.total_amount,
            currency=order.currency,
            shipping_address=order.shipping_address,
            phone=order.phone,
            created_at=order.created_at,
            lines=[
                OrderLineResponse(
                    id=str(line.id),
                    product_id=str(line.product_id),
                    product_name=line.product_name,
                    quantity=line.quantity,
                    price_at_purchase=line.price_at_purchase,
                    line_total=line.line_total,
                )
                for line in order.sorted_lines()
            ],
        )


class PlaceOrderResponse(BaseModel):
    order: OrderResponse
    resumed: bool
    warnings: list[str] = []


class SweepResponse(BaseModel):
    cancelled_order_ids: list[str]
