"""Repository for the Cart aggregate.

A cart and its lines are persisted together by one ``add``. Callers hold the
cart's lock across read, change and ``add`` (see ``CartService``).
"""

from shared.domain import storefront
from shared.errors import DuplicateRow, NotFound
from shared.repository import StorefrontRepository

from ordering.cart.cart import Cart, cart_id_for


@storefront.repository(part_of=Cart)
class CartRepository(StorefrontRepository):
    id_field = "cart_id"
    label = "Cart"
    unique_fields = ("user_id",)

    def find_by_user(self, user_id: str) -> Cart | None:
        return self.find(cart_id_for(user_id))

    def get_or_create(self, user_id: str) -> Cart:
        """Return the user's cart, creating it on first need."""
        cart = self.find_by_user(user_id)
        if cart is not None:
            return cart
        try:
            return self.add(Cart.create(user_id))
        except DuplicateRow:
            # Another process created it between our read and write
            return self.get(cart_id_for(user_id))

    @staticmethod
    def line_not_found(line_id: str) -> NotFound:
        return NotFound({"line_id": [f"Cart line {line_id} does not exist"]})
