"""Shopping cart aggregate: one cart per user, at most one line per product.

Identities are derived rather than random. A user's cart id comes from the
user id, and a line id comes from (cart, product). Two sessions racing to
create the same cart therefore collide on the identity instead of producing
a second cart, and a product always maps to the same line.
"""

import hashlib
from uuid import NAMESPACE_URL, uuid5

from protean.fields import DateTime, HasMany, Identifier, Integer
from shared.domain import storefront
from shared.types import utcnow

_CART_NAMESPACE = uuid5(NAMESPACE_URL, "storefront:cart")
_LINE_NAMESPACE = uuid5(NAMESPACE_URL, "storefront:cart-line")


def cart_id_for(user_id: str) -> str:
    return str(uuid5(_CART_NAMESPACE, str(user_id)))


def line_id_for(cart_id: str, product_id: str) -> str:
    return str(uuid5(_LINE_NAMESPACE, f"{cart_id}:{product_id}"))


@storefront.entity(part_of="Cart")
class CartLine:
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    added_at = DateTime()


@storefront.aggregate
class Cart:
    user_id = Identifier(required=True, unique=True)
    revision = Integer(default=0)
    lines = HasMany(CartLine)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, user_id: str) -> "Cart":
        now = utcnow()
        return cls(id=cart_id_for(user_id), user_id=user_id, revision=0, created_at=now, updated_at=now)

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def is_empty(self) -> bool:
        return not self.lines

    def line_for(self, product_id: str) -> CartLine | None:
        return next((line for line in self.lines if str(line.product_id) == str(product_id)), None)

    def find_line(self, line_id: str) -> CartLine | None:
        return next((line for line in self.lines if str(line.id) == str(line_id)), None)

    def sorted_lines(self) -> list[CartLine]:
        return sorted(self.lines, key=lambda line: (line.added_at is None, line.added_at, str(line.id)))

    def fingerprint(self) -> str:
        """Identify this exact cart content at this revision."""
        contents = ",".join(sorted(f"{line.product_id}x{line.quantity}" for line in self.lines))
        digest = hashlib.sha256(f"{self.id}:{self.revision}:{contents}".encode()).hexdigest()
        return digest[:40]

    # -------------------------------------------------------------------
    # Line management
    # -------------------------------------------------------------------
    def put_line(self, product_id: str, quantity: int) -> CartLine:
        """Set the quantity for a product, creating its line if needed."""
        line = self.line_for(product_id)
        if line is None:
            line = CartLine(
                id=line_id_for(self.id, product_id),
                product_id=str(product_id),
                quantity=quantity,
                added_at=utcnow(),
            )
            self.add_lines(line)
        else:
            line.quantity = quantity
        self.updated_at = utcnow()
        return line

    def drop_line(self, line: CartLine) -> None:
        self.remove_lines(line)
        self.updated_at = utcnow()

    def clear(self) -> int:
        """Remove every line and move to the next revision."""
        removed = len(self.lines)
        for line in list(self.lines):
            self.remove_lines(line)
        self.revision += 1
        self.updated_at = utcnow()
        return removed
