"""Pydantic request/response schemas for the Inventory API.

These are external contracts, kept separate from the internal models.
"""

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Stock Request Schemas
# ---------------------------------------------------------------------------
class AdjustStockRequest(BaseModel):
    quantity_change: int

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"quantity_change": -3},
            ]
        }
    }


class SetStockRequest(BaseModel):
    quantity: int = Field(ge=0)


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class StockLevelResponse(BaseModel):
    product_id: str
    stock_quantity: int
    is_available: bool


class StockChangeResponse(BaseModel):
    product_id: str
    previous_stock: int
    new_stock: int


class LowStockItem(BaseModel):
    product_id: str
    name: str
    stock_quantity: int
