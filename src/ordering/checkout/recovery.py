"""Orphaned order recovery.

An orphan is a pending order whose header committed but whose lines never
all did, and which nobody resumed within the grace period. Sweeping cancels
it, which releases the stock it reserved. Each candidate is re-read under the
order's lock before it is cancelled, so an order a retry finished in the
meantime is left alone.

Stock holds are swept too. A hold whose placement never produced an order is
released; a hold whose order exists is settled against it.
"""

from datetime import datetime, timedelta

import structlog
from inventory.stock.ledger import InventoryLedger, StockChange
from protean.utils.globals import current_domain
from shared.errors import StorefrontError
from shared.locks import KeyedLocks
from shared.types import as_utc, utcnow

from ordering.cart.cart import cart_id_for
from ordering.order.order import Order, OrderStatus
from ordering.order.repository import OrderRepository
from ordering.order.status import OrderStatusService

logger = structlog.get_logger(__name__)


class OrphanedOrderSweeper:
    def __init__(
        self,
        status_service: OrderStatusService,
        ledger: InventoryLedger,
        cart_locks: KeyedLocks | None = None,
        grace_seconds: int = 300,
    ) -> None:
        self.status_service = status_service
        self.ledger = ledger
        self.cart_locks = cart_locks or KeyedLocks()
        self.grace = timedelta(seconds=grace_seconds)

    @property
    def orders(self) -> OrderRepository:
        return current_domain.repository_for(Order)

    def find(self, now: datetime | None = None) -> list[Order]:
        cutoff = self._cutoff(now)
        return [
            order
            for order in self.orders.all(status=OrderStatus.PENDING)
            if not order.is_complete and order.created_at is not None and as_utc(order.created_at) <= cutoff
        ]

    def sweep(self, now: datetime | None = None) -> list[Order]:
        swept = []
        for orphan in self.find(now):
            try:
                cancelled = self._cancel_if_orphaned(orphan.id)
            except StorefrontError as exc:
                # Left pending; the next sweep tries again
                logger.error("Orphaned order not swept", order_id=orphan.id, error=exc.kind)
                continue
            if cancelled is not None:
                swept.append(cancelled)
        self.release_abandoned_holds(now)
        return swept

    def _cancel_if_orphaned(self, order_id: str) -> Order | None:
        with self.status_service.locks.hold(order_id):
            order = self.orders.get(order_id)
            if order.is_complete or order.status != OrderStatus.PENDING.value:
                logger.info("Order no longer orphaned", order_id=order.id, status=order.status)
                return None
            cancelled = self.status_service.apply_transition(
                order.id,
                OrderStatus.CANCELLED,
                allowed_from={OrderStatus.PENDING},
            )
        logger.warning(
            "Orphaned order cancelled",
            order_id=order.id,
            lines_written=len(order.lines),
            line_count=order.line_count,
        )
        return cancelled

    def release_abandoned_holds(self, now: datetime | None = None) -> list[StockChange]:
        """Clear stock holds older than the grace period.

        Runs under the owning user's cart lock, so a placement that is still
        in flight for that user finishes before its holds are looked at.
        """
        cutoff = self._cutoff(now)
        changes = []
        for product in self.ledger.products.with_holds():
            for hold in list(product.holds):
                if hold.created_at is not None and as_utc(hold.created_at) > cutoff:
                    continue
                try:
                    with self.cart_locks.hold(cart_id_for(hold.user_id)):
                        change = self._clear_hold(product.id, hold.placement_key)
                except StorefrontError as exc:
                    logger.error("Stock hold not cleared", product_id=product.id, error=exc.kind)
                    continue
                if change is not None:
                    changes.append(change)
        return changes

    def _clear_hold(self, product_id: str, placement_key: str) -> StockChange | None:
        order = self.orders.find_by_placement_key(placement_key)
        if order is None:
            change = self.ledger.release_hold(product_id, placement_key)
            if change is not None:
                logger.warning("Abandoned stock hold released", product_id=product_id, released=change.delta)
            return change
        keep = order.quantity_for(product_id) if order.stock_reserved else 0
        return self.ledger.settle_hold(product_id, placement_key, keep=keep)

    def _cutoff(self, now: datetime | None) -> datetime:
        return as_utc(now or utcnow()) - self.grace
