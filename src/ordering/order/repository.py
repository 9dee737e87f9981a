"""Repository for the Order aggregate."""

from datetime import UTC, datetime

from shared.domain import storefront
from shared.errors import DuplicateRow
from shared.repository import StorefrontRepository
from shared.types import as_utc

from ordering.order.order import Order, OrderStatus

_EPOCH = datetime.min.replace(tzinfo=UTC)


@storefront.repository(part_of=Order)
class OrderRepository(StorefrontRepository):
    id_field = "order_id"
    label = "Order"
    unique_fields = ("placement_key",)

    def create(self, order: Order) -> Order:
        """Insert a new header. A header with the same placement key is a ``DuplicateRow``."""
        if self.query(placement_key=order.placement_key):
            raise DuplicateRow({"placement_key": [f"An order with placement key {order.placement_key} exists"]})
        return self.add(order)

    def find_by_placement_key(self, placement_key: str) -> Order | None:
        orders = self.query(placement_key=placement_key)
        return orders[0] if orders else None

    def for_user(self, user_id: str) -> list[Order]:
        return self._newest_first(self.query(user_id=user_id))

    def all(self, status: OrderStatus | None = None) -> list[Order]:
        filters = {"status": status.value} if status is not None else {}
        return self._newest_first(self.query(**filters))

    @staticmethod
    def _newest_first(orders: list[Order]) -> list[Order]:
        return sorted(orders, key=lambda order: as_utc(order.created_at) or _EPOCH, reverse=True)
