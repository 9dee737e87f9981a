"""Cart line management: add, set quantity, remove, clear.

Every mutation re-reads the product and validates the proposed quantity
against live stock. Nothing is reserved here: a cart is a non-binding
intent, and stock is enforced for real only at order placement. Mutations of
one cart are serialised on the cart's lock so two tabs adding the same
product cannot lose a quantity.
"""

import structlog
from identity.session import Session, require_user
from inventory.product.product import Product
from inventory.product.repository import ProductRepository
from protean.utils.globals import current_domain
from shared.errors import InsufficientStock, ValidationError
from shared.locks import KeyedLocks

from ordering.cart.cart import Cart, CartLine, cart_id_for
from ordering.cart.repository import CartRepository

logger = structlog.get_logger(__name__)


class CartService:
    def __init__(self, locks: KeyedLocks | None = None) -> None:
        self.locks = locks or KeyedLocks()

    @property
    def carts(self) -> CartRepository:
        return current_domain.repository_for(Cart)

    @property
    def products(self) -> ProductRepository:
        return current_domain.repository_for(Product)

    # -------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------
    def add_line(self, session: Session, product_id: str, qty: int = 1) -> CartLine:
        """Add ``qty`` of a product, merging into an existing line for it."""
        user_id = require_user(session)
        if qty < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        with self.locks.hold(cart_id_for(user_id)):
            product = self.products.get(product_id)
            cart = self.carts.get_or_create(user_id)
            existing = cart.line_for(product.id)
            new_qty = qty + (existing.quantity if existing is not None else 0)
            self._ensure_purchasable(product, new_qty)
            line = cart.put_line(product.id, new_qty)
            self.carts.add(cart)

        logger.info(
            "Cart line added",
            cart_id=cart.id,
            product_id=product.id,
            added=qty,
            quantity=line.quantity,
        )
        return line

    def set_quantity(self, session: Session, line_id: str, new_qty: int) -> CartLine | None:
        """Overwrite a line's quantity.

        A quantity below one is ignored (returns None); removing a line is
        ``remove_line``'s job.
        """
        user_id = require_user(session)
        if new_qty < 1:
            logger.info("Ignored cart quantity below one", line_id=str(line_id), requested=new_qty)
            return None

        with self.locks.hold(cart_id_for(user_id)):
            cart = self.carts.find_by_user(user_id)
            # Lines of other carts are indistinguishable from missing ones
            line = cart.find_line(line_id) if cart is not None else None
            if line is None:
                raise self.carts.line_not_found(line_id)

            product = self.products.get(line.product_id)
            if new_qty > product.stock_quantity:
                raise InsufficientStock(
                    product_id=product.id,
                    requested=new_qty,
                    available=product.stock_quantity,
                    product_name=product.name,
                )
            previous_quantity = line.quantity
            line = cart.put_line(line.product_id, new_qty)
            self.carts.add(cart)

        logger.info(
            "Cart quantity updated",
            cart_id=cart.id,
            line_id=line.id,
            previous_quantity=previous_quantity,
            new_quantity=new_qty,
        )
        return line

    def remove_line(self, session: Session, line_id: str) -> bool:
        """Delete a line. Removing a line that is not there is not an error."""
        user_id = require_user(session)
        with self.locks.hold(cart_id_for(user_id)):
            cart = self.carts.find_by_user(user_id)
            line = cart.find_line(line_id) if cart is not None else None
            if line is None:
                return False
            cart.drop_line(line)
            self.carts.add(cart)

        logger.info("Cart line removed", cart_id=cart.id, line_id=line.id, product_id=line.product_id)
        return True

    def clear(self, session: Session) -> int:
        """Remove every line and move the cart to its next revision."""
        user_id = require_user(session)
        with self.locks.hold(cart_id_for(user_id)):
            cart = self.carts.find_by_user(user_id)
            if cart is None:
                return 0
            removed = cart.clear()
            self.carts.add(cart)

        logger.info("Cart cleared", cart_id=cart.id, lines_removed=removed, revision=cart.revision)
        return removed

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    @staticmethod
    def _ensure_purchasable(product: Product, quantity: int) -> None:
        if not product.is_available:
            raise ValidationError({"product_id": [f"{product.name} is not available for purchase"]})
        if quantity > product.stock_quantity:
            raise InsufficientStock(
                product_id=product.id,
                requested=quantity,
                available=product.stock_quantity,
                product_name=product.name,
            )
