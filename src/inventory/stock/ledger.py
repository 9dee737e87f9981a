"""Inventory Ledger: the single arbiter of a product's available stock.

A repository can only read an aggregate and write it back, so a naive
read-modify-write from two checkouts can lose an update and oversell the last
unit. Every stock change therefore runs read, compute and write while holding
a per-product lock. Nothing else in the system writes ``stock_quantity``.

Kinds of change:
    reserve(delta)      Signed change that must not go below zero. Rejected
                        whole with InsufficientStock; stock untouched.
    hold(qty, key)      A reservation recorded on the product under a
                        placement key. Holding again under the same key
                        reuses it, adjusting only the difference.
    release_hold(key)   Give a hold's units back and drop the hold.
    settle_hold(key)    Drop a hold whose units now belong to an order.
    adjust_stock(delta) Administrative +/- that floors at zero instead of
    set_stock(qty)      failing.
"""

from dataclasses import dataclass

import structlog
from protean.utils.globals import current_domain
from shared.errors import InsufficientStock, ValidationError
from shared.locks import KeyedLocks
from shared.types import utcnow

from inventory.product.product import Product, StockHold, hold_id_for
from inventory.product.repository import ProductRepository

logger = structlog.get_logger(__name__)

DEFAULT_LOW_STOCK_THRESHOLD = 5


@dataclass(frozen=True)
class StockChange:
    """Outcome of a successful stock change."""

    product_id: str
    previous_stock: int
    new_stock: int
    ok: bool = True

    @property
    def delta(self) -> int:
        return self.new_stock - self.previous_stock


class InventoryLedger:
    def __init__(
        self,
        low_stock_threshold: int = DEFAULT_LOW_STOCK_THRESHOLD,
        locks: KeyedLocks | None = None,
    ) -> None:
        self.low_stock_threshold = low_stock_threshold
        self._locks = locks or KeyedLocks()

    @property
    def products(self) -> ProductRepository:
        return current_domain.repository_for(Product)

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    def available(self, product_id: str) -> int:
        """Current stock as last committed. May be stale by the time it is used."""
        return self.products.get(product_id).stock_quantity

    # -------------------------------------------------------------------
    # Guarded changes
    # -------------------------------------------------------------------
    def reserve(self, product_id: str, delta: int) -> StockChange:
        """Apply a signed change to stock, rejecting it if stock would go negative."""
        with self._locks.hold(product_id):
            product = self.products.get(product_id)
            self._ensure_covers(product, delta, requested=-delta)
            return self._write(product, product.stock_quantity + delta, reason="reserve")

    def release(self, product_id: str, quantity: int) -> StockChange:
        """Return previously reserved units to stock."""
        if quantity <= 0:
            raise ValidationError({"quantity": ["Released quantity must be positive"]})
        return self.reserve(product_id, quantity)

    # -------------------------------------------------------------------
    # Holds
    # -------------------------------------------------------------------
    def hold(self, product_id: str, quantity: int, placement_key: str, user_id: str) -> StockChange:
        """Take ``quantity`` units for a placement attempt.

        An existing hold under the same key is reused: only the difference
        between the held and the requested quantity touches stock.
        """
        if quantity <= 0:
            raise ValidationError({"quantity": ["Held quantity must be positive"]})

        with self._locks.hold(product_id):
            product = self.products.get(product_id)
            existing = product.hold_for(placement_key)
            already_held = existing.quantity if existing is not None else 0
            delta = already_held - quantity

            if existing is not None and delta == 0:
                logger.info("Stock hold reused", product_id=product.id, quantity=quantity)
                return StockChange(
                    product_id=product.id,
                    previous_stock=product.stock_quantity,
                    new_stock=product.stock_quantity,
                )

            self._ensure_covers(product, delta, requested=quantity, available=product.stock_quantity + already_held)
            if existing is None:
                product.add_holds(
                    StockHold(
                        id=hold_id_for(product.id, placement_key),
                        placement_key=placement_key,
                        user_id=user_id,
                        quantity=quantity,
                        created_at=utcnow(),
                    )
                )
            else:
                existing.quantity = quantity
            return self._write(product, product.stock_quantity + delta, reason="hold")

    def release_hold(self, product_id: str, placement_key: str) -> StockChange | None:
        """Give a hold's units back to stock. Returns None when there is no such hold."""
        with self._locks.hold(product_id):
            product = self.products.get(product_id)
            hold = product.hold_for(placement_key)
            if hold is None:
                return None
            product.remove_holds(hold)
            return self._write(product, product.stock_quantity + hold.quantity, reason="release_hold")

    def settle_hold(self, product_id: str, placement_key: str, keep: int) -> StockChange | None:
        """Drop a hold once an order owns ``keep`` of its units; any surplus goes back to stock."""
        with self._locks.hold(product_id):
            product = self.products.get(product_id)
            hold = product.hold_for(placement_key)
            if hold is None:
                return None
            product.remove_holds(hold)
            surplus = max(0, hold.quantity - keep)
            return self._write(product, product.stock_quantity + surplus, reason="settle_hold")

    # -------------------------------------------------------------------
    # Administrative changes
    # -------------------------------------------------------------------
    def adjust_stock(self, product_id: str, delta: int) -> StockChange:
        """Manual +/- adjustment. Never drives stock below zero."""
        with self._locks.hold(product_id):
            product = self.products.get(product_id)
            return self._write(product, max(0, product.stock_quantity + delta), reason="adjust")

    def set_stock(self, product_id: str, quantity: int) -> StockChange:
        with self._locks.hold(product_id):
            product = self.products.get(product_id)
            return self._write(product, max(0, quantity), reason="set")

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    @staticmethod
    def _ensure_covers(product: Product, delta: int, requested: int, available: int | None = None) -> None:
        if product.stock_quantity + delta >= 0:
            return
        available = product.stock_quantity if available is None else available
        logger.info(
            "Stock reservation rejected",
            product_id=product.id,
            requested=requested,
            available=available,
        )
        raise InsufficientStock(
            product_id=product.id,
            requested=requested,
            available=available,
            product_name=product.name,
        )

    def _write(self, product: Product, new_stock: int, reason: str) -> StockChange:
        previous = product.stock_quantity
        product.stock_quantity = new_stock
        product.updated_at = utcnow()
        self.products.add(product)
        if new_stock != previous:
            logger.info(
                "Stock changed",
                product_id=product.id,
                reason=reason,
                previous_stock=previous,
                new_stock=new_stock,
            )
        self._check_low_stock(product, new_stock)
        return StockChange(product_id=product.id, previous_stock=previous, new_stock=new_stock)

    def _check_low_stock(self, product: Product, new_stock: int) -> None:
        if new_stock < self.low_stock_threshold:
            logger.warning(
                "Low stock detected",
                product_id=product.id,
                product_name=product.name,
                current_stock=new_stock,
                threshold=self.low_stock_threshold,
            )
