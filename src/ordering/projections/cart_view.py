"""Cart view: current cart state for UI rendering.

Joins each line with the live product so the drawer shows today's name and
price, and flags lines whose quantity has gone stale against stock. Built on
demand from the Cart and Product aggregates; nothing is stored.
"""

from identity.session import Session, require_user
from inventory.product.product import Product
from protean.utils.globals import current_domain
from pydantic import BaseModel
from shared.config import Settings

from ordering.cart.cart import Cart
from ordering.checkout.pricing import price


class CartViewLine(BaseModel):
    line_id: str
    product_id: str
    product_name: str
    unit_price: float
    quantity: int
    line_total: float
    stock_quantity: int
    is_available: bool
    exceeds_stock: bool


class CartView(BaseModel):
    cart_id: str | None = None
    lines: list[CartViewLine] = []
    item_count: int = 0
    subtotal: float = 0.0
    shipping_cost: float = 0.0
    total_amount: float = 0.0
    currency: str = "INR"


class CartViewBuilder:
    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or Settings()

    def view(self, session: Session) -> CartView:
        user_id = require_user(session)
        cart = current_domain.repository_for(Cart).find_by_user(user_id)
        if cart is None or cart.is_empty:
            return CartView(cart_id=cart.id if cart else None, currency=self.settings.currency)

        lines = []
        products = current_domain.repository_for(Product)
        for line in cart.sorted_lines():
            product = products.find(line.product_id)
            if product is None:
                # Deleted from the catalogue; shown so the user can remove it
                lines.append(
                    CartViewLine(
                        line_id=line.id,
                        product_id=line.product_id,
                        product_name="Unavailable product",
                        unit_price=0.0,
                        quantity=line.quantity,
                        line_total=0.0,
                        stock_quantity=0,
                        is_available=False,
                        exceeds_stock=True,
                    )
                )
                continue
            lines.append(
                CartViewLine(
                    line_id=line.id,
                    product_id=product.id,
                    product_name=product.name,
                    unit_price=product.price,
                    quantity=line.quantity,
                    line_total=round(product.price * line.quantity, 2),
                    stock_quantity=product.stock_quantity,
                    is_available=product.is_available,
                    exceeds_stock=line.quantity > product.stock_quantity,
                )
            )

        pricing = price(
            lines,
            shipping_fee=self.settings.shipping_fee,
            free_shipping_threshold=self.settings.free_shipping_threshold,
        )
        return CartView(
            cart_id=cart.id,
            lines=lines,
            item_count=sum(line.quantity for line in lines),
            subtotal=pricing.subtotal,
            shipping_cost=pricing.shipping_cost,
            total_amount=pricing.total_amount,
            currency=self.settings.currency,
        )
