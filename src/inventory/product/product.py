"""Product aggregate: the slice of the catalogue record the consistency core reads.

Display fields are owned by the catalogue. Inside this core, only the
Inventory Ledger writes ``stock_quantity`` and ``holds``.

A hold records stock taken for one placement attempt, keyed by its placement
key. It is part of the product aggregate, so the stock decrement and the
record of who took it are persisted by the same ``repo.add``.
"""

from uuid import NAMESPACE_URL, uuid5

from protean.fields import Boolean, DateTime, Float, HasMany, Identifier, Integer, String
from shared.domain import storefront

_HOLD_NAMESPACE = uuid5(NAMESPACE_URL, "storefront:stock-hold")


def hold_id_for(product_id: str, placement_key: str) -> str:
    return str(uuid5(_HOLD_NAMESPACE, f"{product_id}:{placement_key}"))


@storefront.entity(part_of="Product")
class StockHold:
    placement_key = String(required=True, max_length=120)
    user_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    created_at = DateTime()


@storefront.aggregate
class Product:
    name = String(required=True, max_length=255)
    price = Float(required=True, min_value=0.0)
    stock_quantity = Integer(default=0, min_value=0)
    is_available = Boolean(default=True)
    category_id = Identifier()
    holds = HasMany(StockHold)
    updated_at = DateTime()

    def hold_for(self, placement_key: str) -> StockHold | None:
        return next((hold for hold in self.holds if hold.placement_key == placement_key), None)

    def is_low_on_stock(self, threshold: int) -> bool:
        return self.stock_quantity < threshold
