"""Order history: a customer's own orders, and the admin listing."""

from identity.session import Session, require_admin, require_user
from protean.utils.globals import current_domain
from shared.errors import NotFound

from ordering.order.order import Order
from ordering.order.repository import OrderRepository
from ordering.order.status import parse_status


class OrderHistory:
    @property
    def orders(self) -> OrderRepository:
        return current_domain.repository_for(Order)

    def list_orders(self, session: Session) -> list[Order]:
        """The caller's orders, newest first, with their lines."""
        return self.orders.for_user(require_user(session))

    def list_all_orders(self, session: Session, status: str | None = None) -> list[Order]:
        require_admin(session)
        return self.orders.all(status=parse_status(status) if status else None)

    def get_order(self, session: Session, order_id: str) -> Order:
        """An order visible to its owner and to admins; anyone else sees NotFound."""
        user_id = require_user(session)
        order = self.orders.get(order_id)
        if order.user_id != user_id and not session.is_admin:
            raise NotFound({"order_id": [f"Order {order_id} does not exist"]})
        return order
