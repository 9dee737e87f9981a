"""Order aggregate: an immutable purchase record whose only mutable field is status.

The header carries a denormalised snapshot of everything needed to rebuild
its lines (``line_snapshot``) and the number of lines it must end up with
(``line_count``). A header whose stored lines fall short of ``line_count`` is
an orphan left by an interrupted placement.

State Machine:
    PENDING → PROCESSING → SHIPPED → DELIVERED
    PENDING / PROCESSING → CANCELLED
    DELIVERED and CANCELLED are terminal.
"""

import json
from enum import Enum
from uuid import NAMESPACE_URL, uuid5

from protean.fields import Boolean, DateTime, Float, HasMany, Identifier, Integer, String, Text
from shared.domain import storefront
from shared.errors import ValidationError
from shared.types import utcnow

_ORDER_LINE_NAMESPACE = uuid5(NAMESPACE_URL, "storefront:order-line")


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


# State machine transition map
_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
}


def order_line_id_for(order_id: str, product_id: str) -> str:
    return str(uuid5(_ORDER_LINE_NAMESPACE, f"{order_id}:{product_id}"))


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@storefront.value_object(part_of="Order")
class LineSnapshot:
    """A cart line priced at the moment of purchase."""

    product_id = Identifier(required=True)
    product_name = String(required=True, max_length=255)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@storefront.entity(part_of="Order")
class OrderLine:
    """A purchased product, decoupled from the live catalogue record.

    Later edits to the product's name or price, or its deletion, never reach
    an existing order line.
    """

    product_id = Identifier(required=True)
    product_name = String(required=True, max_length=255)
    quantity = Integer(required=True, min_value=1)
    price_at_purchase = Float(required=True, min_value=0.0)

    @property
    def line_total(self) -> float:
        return round(self.price_at_purchase * self.quantity, 2)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@storefront.aggregate
class Order:
    user_id = Identifier(required=True)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    subtotal = Float(required=True, min_value=0.0)
    shipping_cost = Float(required=True, min_value=0.0)
    total_amount = Float(required=True, min_value=0.0)
    currency = String(max_length=3, default="INR")
    shipping_address = String(required=True, max_length=500)
    phone = String(required=True, max_length=30)
    placement_key = String(required=True, max_length=120, unique=True)
    line_count = Integer(required=True, min_value=1)
    stock_reserved = Boolean(default=False)
    line_snapshot = Text(required=True)  # JSON array of LineSnapshot dicts
    lines = HasMany(OrderLine)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        user_id: str,
        snapshot: list[LineSnapshot],
        pricing,
        shipping_address: str,
        phone: str,
        placement_key: str,
        stock_reserved: bool,
        currency: str = "INR",
    ) -> "Order":
        """Build a pending order header from priced cart lines. Lines are written separately."""
        now = utcnow()
        return cls(
            user_id=user_id,
            status=OrderStatus.PENDING.value,
            subtotal=pricing.subtotal,
            shipping_cost=pricing.shipping_cost,
            total_amount=pricing.total_amount,
            currency=currency,
            shipping_address=shipping_address,
            phone=phone,
            placement_key=placement_key,
            line_count=len(snapshot),
            stock_reserved=stock_reserved,
            line_snapshot=json.dumps([line.to_dict() for line in snapshot]),
            created_at=now,
            updated_at=now,
        )

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def snapshot(self) -> list[LineSnapshot]:
        return [LineSnapshot(**line) for line in json.loads(self.line_snapshot or "[]")]

    def quantity_for(self, product_id: str) -> int:
        return sum(line.quantity for line in self.snapshot() if str(line.product_id) == str(product_id))

    @property
    def is_complete(self) -> bool:
        """All lines promised by the header have been written."""
        return len(self.lines) == self.line_count

    def sorted_lines(self) -> list[OrderLine]:
        return sorted(self.lines, key=lambda line: (line.product_name, str(line.id)))

    def missing_lines(self) -> list[LineSnapshot]:
        written = {str(line.product_id) for line in self.lines}
        return [line for line in self.snapshot() if str(line.product_id) not in written]

    # -------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------
    def write_line(self, snapshot: LineSnapshot) -> OrderLine:
        line = OrderLine(
            id=order_line_id_for(self.id, snapshot.product_id),
            product_id=snapshot.product_id,
            product_name=snapshot.product_name,
            quantity=snapshot.quantity,
            price_at_purchase=snapshot.unit_price,
        )
        self.add_lines(line)
        return line

    def assert_can_transition(self, target_status: OrderStatus) -> None:
        """Validate that the current state allows transition to target."""
        current = OrderStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    def transition_to(self, target_status: OrderStatus) -> None:
        self.assert_can_transition(target_status)
        self.status = target_status.value
        self.updated_at = utcnow()
