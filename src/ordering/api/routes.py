"""FastAPI routes for the Ordering domain: cart, orders and order admin."""

from fastapi import APIRouter, Depends, Response
from identity.api.session import current_session
from identity.session import Session, require_admin
from storefront import Storefront, get_storefront

from ordering.api.schemas import (
    AddToCartRequest,
    CartLineResponse,
    ClearCartResponse,
    OrderResponse,
    PlaceOrderRequest,
    PlaceOrderResponse,
    StatusResponse,
    SweepResponse,
    UpdateCartQuantityRequest,
    UpdateOrderStatusRequest,
)
from ordering.projections.cart_view import CartView

# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/cart", tags=["cart"])


@cart_router.get("", response_model=CartView)
async def view_cart(
    session: Session = Depends(current_session),
    storefront: Storefront = Depends(get_storefront),
) -> CartView:
    return storefront.cart_view.view(session)


@cart_router.post("/lines", status_code=201, response_model=CartLineResponse)
async def add_cart_line(
    body: AddToCartRequest,
    session: Session = Depends(current_session),
    storefront: Storefront = Depends(get_storefront),
) -> CartLineResponse:
    line = storefront.cart.add_line(session, body.product_id, body.quantity)
    return CartLineResponse(line_id=str(line.id), product_id=str(line.product_id), quantity=line.quantity)


@cart_router.put("/lines/{line_id}", response_model=StatusResponse)
async def update_cart_line(
    line_id: str,
    body: UpdateCartQuantityRequest,
    session: Session = Depends(current_session),
    storefront: Storefront = Depends(get_storefront),
) -> StatusResponse:
    line = storefront.cart.set_quantity(session, line_id, body.quantity)
    return StatusResponse(status="ok" if line is not None else "ignored")


@cart_router.delete("/lines/{line_id}", status_code=204)
async def remove_cart_line(
    line_id: str,
    session: Session = Depends(current_session),
    storefront: Storefront = Depends(get_storefront),
) -> Response:
    storefront.cart.remove_line(session, line_id)
    return Response(status_code=204)


@cart_router.delete("", response_model=ClearCartResponse)
async def clear_cart(
    session: Session = Depends(current_session),
    storefront: Storefront = Depends(get_storefront),
) -> ClearCartResponse:
    return ClearCartResponse(lines_removed=storefront.cart.clear(session))


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=PlaceOrderResponse)
async def place_order(
    body: PlaceOrderRequest,
    response: Response,
    session: Session = Depends(current_session),
    storefront: Storefront = Depends(get_storefront),
) -> PlaceOrderResponse:
    result = storefront.checkout.place_order(session, body.phone, body.address, body.idempotency_key)
    if result.resumed:
        response.status_code = 200
    return PlaceOrderResponse(
        order=OrderResponse.from_order(result.order),
        resumed=result.resumed,
        warnings=result.warnings,
    )


@order_router.get("", response_model=list[OrderResponse])
async def list_my_orders(
    session: Session = Depends(current_session),
    storefront: Storefront = Depends(get_storefront),
) -> list[OrderResponse]:
    return [OrderResponse.from_order(order) for order in storefront.history.list_orders(session)]


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: str,
    session: Session = Depends(current_session),
    storefront: Storefront = Depends(get_storefront),
) -> OrderResponse:
    return OrderResponse.from_order(storefront.history.get_order(session, order_id))


@order_router.post("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(
    order_id: str,
    session: Session = Depends(current_session),
    storefront: Storefront = Depends(get_storefront),
) -> OrderResponse:
    return OrderResponse.from_order(storefront.order_status.cancel(session, order_id))


# ---------------------------------------------------------------------------
# Admin Router
# ---------------------------------------------------------------------------
admin_router = APIRouter(prefix="/admin", tags=["admin"])


@admin_router.get("/orders", response_model=list[OrderResponse])
async def list_all_orders(
    status: str | None = None,
    session: Session = Depends(current_session),
    storefront: Storefront = Depends(get_storefront),
) -> list[OrderResponse]:
    return [OrderResponse.from_order(order) for order in storefront.history.list_all_orders(session, status)]


@admin_router.put("/orders/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: str,
    body: UpdateOrderStatusRequest,
    session: Session = Depends(current_session),
    storefront: Storefront = Depends(get_storefront),
) -> OrderResponse:
    return OrderResponse.from_order(storefront.order_status.update_status(session, order_id, body.status))


@admin_router.post("/orders/sweep-orphans", response_model=SweepResponse)
async def sweep_orphaned_orders(
    session: Session = Depends(current_session),
    storefront: Storefront = Depends(get_storefront),
) -> SweepResponse:
    require_admin(session)
    swept = storefront.sweeper.sweep()
    return SweepResponse(cancelled_order_ids=[str(order.id) for order in swept])
