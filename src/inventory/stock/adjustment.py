"""Administrative stock management, as exposed to the admin panel."""

import structlog
from identity.session import Session, require_admin
from shared.errors import ValidationError

from inventory.product.product import Product
from inventory.stock.ledger import InventoryLedger, StockChange

logger = structlog.get_logger(__name__)


class StockAdministration:
    def __init__(self, ledger: InventoryLedger) -> None:
        self.ledger = ledger

    def adjust_stock(self, session: Session, product_id: str, delta: int) -> StockChange:
        """Apply a manual +/- adjustment; the result floors at zero."""
        admin_id = require_admin(session)
        change = self.ledger.adjust_stock(product_id, delta)
        logger.info(
            "Stock adjusted by admin",
            product_id=str(product_id),
            requested_delta=delta,
            applied_delta=change.delta,
            adjusted_by=admin_id,
        )
        return change

    def set_stock(self, session: Session, product_id: str, quantity: int) -> StockChange:
        admin_id = require_admin(session)
        if quantity < 0:
            raise ValidationError({"quantity": ["Stock quantity cannot be negative"]})
        change = self.ledger.set_stock(product_id, quantity)
        logger.info("Stock set by admin", product_id=str(product_id), new_stock=change.new_stock, set_by=admin_id)
        return change

    def low_stock_report(self, session: Session, threshold: int | None = None) -> list[Product]:
        require_admin(session)
        return self.ledger.products.low_stock(self.ledger.low_stock_threshold if threshold is None else threshold)
