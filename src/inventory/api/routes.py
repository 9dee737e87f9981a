"""FastAPI routes for the Inventory domain: product stock levels."""

from fastapi import APIRouter, Depends
from identity.api.session import current_session
from identity.session import Session
from storefront import Storefront, get_storefront

from inventory.api.schemas import (
    AdjustStockRequest,
    LowStockItem,
    SetStockRequest,
    StockChangeResponse,
    StockLevelResponse,
)

# ---------------------------------------------------------------------------
# Stock Router
# ---------------------------------------------------------------------------
stock_router = APIRouter(prefix="/products", tags=["stock"])


@stock_router.get("/{product_id}/stock", response_model=StockLevelResponse)
async def get_stock_level(
    product_id: str,
    storefront: Storefront = Depends(get_storefront),
) -> StockLevelResponse:
    product = storefront.ledger.products.get(product_id)
    return StockLevelResponse(
        product_id=product.id,
        stock_quantity=product.stock_quantity,
        is_available=product.is_available,
    )


@stock_router.put("/{product_id}/stock/adjust", response_model=StockChangeResponse)
async def adjust_stock(
    product_id: str,
    body: AdjustStockRequest,
    session: Session = Depends(current_session),
    storefront: Storefront = Depends(get_storefront),
) -> StockChangeResponse:
    change = storefront.stock.adjust_stock(session, product_id, body.quantity_change)
    return StockChangeResponse(
        product_id=change.product_id,
        previous_stock=change.previous_stock,
        new_stock=change.new_stock,
    )


@stock_router.put("/{product_id}/stock", response_model=StockChangeResponse)
async def set_stock(
    product_id: str,
    body: SetStockRequest,
    session: Session = Depends(current_session),
    storefront: Storefront = Depends(get_storefront),
) -> StockChangeResponse:
    change = storefront.stock.set_stock(session, product_id, body.quantity)
    return StockChangeResponse(
        product_id=change.product_id,
        previous_stock=change.previous_stock,
        new_stock=change.new_stock,
    )


# ---------------------------------------------------------------------------
# Admin Router
# ---------------------------------------------------------------------------
inventory_admin_router = APIRouter(prefix="/admin", tags=["admin"])


@inventory_admin_router.get("/low-stock", response_model=list[LowStockItem])
async def low_stock_report(
    threshold: int | None = None,
    session: Session = Depends(current_session),
    storefront: Storefront = Depends(get_storefront),
) -> list[LowStockItem]:
    return [
        LowStockItem(product_id=product.id, name=product.name, stock_quantity=product.stock_quantity)
        for product in storefront.stock.low_stock_report(session, threshold)
    ]
