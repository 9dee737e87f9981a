"""Service wiring.

Importing this module registers every aggregate, entity and repository with
the ``storefront`` domain. ``build_storefront`` then assembles the services
around three shared lock registries:

    cart locks   CartService, the placement saga and the hold sweeper
    order locks  OrderStatusService, the placement saga and the orphan sweeper
    stock locks  InventoryLedger

Locks are always taken in that order (cart, order, product). The HTTP layer
and ``manage.py`` obtain the services through ``get_storefront``.
"""

from dataclasses import dataclass

from inventory.stock.adjustment import StockAdministration
from inventory.stock.ledger import InventoryLedger
from ordering.cart.items import CartService
from ordering.checkout.recovery import OrphanedOrderSweeper
from ordering.checkout.saga import OrderPlacementSaga
from ordering.order.status import OrderStatusService
from ordering.projections.cart_view import CartViewBuilder
from ordering.projections.order_history import OrderHistory
from shared.config import Settings
from shared.domain import storefront as domain
from shared.locks import KeyedLocks


@dataclass
class Storefront:
    settings: Settings
    ledger: InventoryLedger
    stock: StockAdministration
    cart: CartService
    cart_view: CartViewBuilder
    checkout: OrderPlacementSaga
    order_status: OrderStatusService
    history: OrderHistory
    sweeper: OrphanedOrderSweeper


def build_storefront(settings: Settings) -> Storefront:
    cart_locks = KeyedLocks()
    order_locks = KeyedLocks()
    ledger = InventoryLedger(low_stock_threshold=settings.low_stock_threshold, locks=KeyedLocks())
    cart = CartService(locks=cart_locks)
    order_status = OrderStatusService(ledger, locks=order_locks)
    return Storefront(
        settings=settings,
        ledger=ledger,
        stock=StockAdministration(ledger),
        cart=cart,
        cart_view=CartViewBuilder(settings),
        checkout=OrderPlacementSaga(ledger, cart, settings, order_locks=order_locks),
        order_status=order_status,
        history=OrderHistory(),
        sweeper=OrphanedOrderSweeper(
            order_status,
            ledger,
            cart_locks=cart_locks,
            grace_seconds=settings.orphan_grace_seconds,
        ),
    )


_current: Storefront | None = None


def get_storefront() -> Storefront:
    """Return the process-wide storefront, built from the domain's config on first use."""
    global _current
    if _current is None:
        _current = build_storefront(Settings.from_domain(domain))
    return _current


def set_storefront(storefront: Storefront | None) -> None:
    """Override (or, with None, reset) the process-wide storefront."""
    global _current
    _current = storefront
