"""Order status changes: admin transitions and customer cancellation.

Status is the only mutable field of an order. Cancelling an order that
reserved stock at placement gives that stock back: the status is written
first, then the reserved quantities from the order's line snapshot are
released through the ledger.

Every transition re-reads the order under its per-order lock, and the
placement saga writes lines under the same lock. Preconditions such as "only
pending orders" are checked inside it, never against an earlier read.
"""

from collections.abc import Collection

import structlog
from identity.session import Session, require_admin, require_user
from inventory.stock.ledger import InventoryLedger
from protean.utils.globals import current_domain
from shared.errors import NotFound, StorefrontError, UpstreamFailure, ValidationError
from shared.locks import KeyedLocks

from ordering.order.order import Order, OrderStatus
from ordering.order.repository import OrderRepository

logger = structlog.get_logger(__name__)


def parse_status(value: str | OrderStatus) -> OrderStatus:
    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(s.value for s in OrderStatus)
        raise ValidationError({"status": [f"Unknown status '{value}'; expected one of {allowed}"]}) from None


class OrderStatusService:
    def __init__(self, ledger: InventoryLedger, locks: KeyedLocks | None = None) -> None:
        self.ledger = ledger
        self.locks = locks or KeyedLocks()

    @property
    def orders(self) -> OrderRepository:
        return current_domain.repository_for(Order)

    def update_status(self, session: Session, order_id: str, new_status: str | OrderStatus) -> Order:
        """Move an order along the status machine. Admin only."""
        admin_id = require_admin(session)
        target = parse_status(new_status)
        order = self.apply_transition(order_id, target)
        logger.info("Order status updated by admin", order_id=order.id, status=order.status, admin_id=admin_id)
        return order

    def cancel(self, session: Session, order_id: str) -> Order:
        """Cancel one of the caller's own orders while it is still pending."""
        user_id = require_user(session)
        order = self.orders.get(order_id)
        if order.user_id != user_id:
            raise NotFound({"order_id": [f"Order {order_id} does not exist"]})
        return self.apply_transition(order.id, OrderStatus.CANCELLED, allowed_from={OrderStatus.PENDING})

    def apply_transition(
        self,
        order_id: str,
        target: OrderStatus,
        allowed_from: Collection[OrderStatus] | None = None,
    ) -> Order:
        """Write ``target`` if the order, as read under its lock, may take it."""
        with self.locks.hold(order_id):
            order = self.orders.get(order_id)
            previous = OrderStatus(order.status)
            if allowed_from is not None and previous not in allowed_from:
                allowed = " or ".join(sorted(status.value for status in allowed_from))
                raise ValidationError(
                    {"status": [f"Order is {previous.value}; only {allowed} orders can be {target.value}"]}
                )
            order.transition_to(target)
            self.orders.add(order)
            logger.info("Order status changed", order_id=order.id, previous=previous.value, status=target.value)

            if target is OrderStatus.CANCELLED and order.stock_reserved:
                self.release_reserved_stock(order)
        return order

    def release_reserved_stock(self, order: Order) -> None:
        """Return every quantity the order reserved at placement."""
        failed = []
        for line in order.snapshot():
            try:
                self.ledger.release(line.product_id, line.quantity)
            except NotFound:
                logger.warning(
                    "Reserved stock not released, product no longer exists",
                    order_id=order.id,
                    product_id=line.product_id,
                    quantity=line.quantity,
                )
            except StorefrontError as exc:
                failed.append({"product_id": line.product_id, "quantity": line.quantity, "error": exc.kind})

        if failed:
            logger.error("Reserved stock release failed", order_id=order.id, held=failed)
            raise UpstreamFailure(
                {"order_id": [f"Order {order.id} was cancelled but some stock could not be released"]},
                retryable=False,
            )
