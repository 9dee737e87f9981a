"""Order Placement Saga: turns a user's cart into an order.

Each ``repo.add`` commits on its own, so placement cannot be one transaction.
It is a sequence of steps whose order is the consistency tool:

    1.  revalidate   re-read every product, reject stale lines (no writes)
    1b. reserve      hold stock under the placement key; compensated on failure
    2.  order        write the header, unique on ``placement_key``
    3.  lines        write one OrderLine per snapshot line
    4.  clear cart   best-effort
    5.  profile      best-effort

Everything before step 2 either succeeds or leaves no trace. A failure after
the header commits raises ``PlacementIncomplete``; repeating the call with
the same placement key finds the header and resumes at step 3 instead of
creating a second order. Headers that are never resumed are picked up by the
orphan sweeper.

Stock is held on each product under the placement key, in the same write as
the decrement. A retry under the same key reuses those holds instead of
taking the stock twice, and holds whose placement never produced an order are
released by the sweeper.

The placement key is derived from the caller's idempotency key when one is
supplied, otherwise from the cart's fingerprint (id, revision and lines), so
a retry of an unchanged cart lands on the same order.
"""

import hashlib
from dataclasses import dataclass, field

import structlog
from identity.profile import DeliveryProfile, ProfileRepository
from identity.session import Session, require_user
from inventory.stock.ledger import InventoryLedger
from protean.utils.globals import current_domain
from shared.config import Settings
from shared.errors import (
    DuplicateRow,
    EmptyCart,
    InsufficientStock,
    NotFound,
    PlacementIncomplete,
    StorefrontError,
    UpstreamFailure,
    ValidationError,
)
from shared.locks import KeyedLocks
from shared.logging import add_context, clear_context

from ordering.cart.cart import Cart, cart_id_for
from ordering.cart.items import CartService
from ordering.checkout.pricing import price
from ordering.order.order import LineSnapshot, Order, OrderLine, OrderStatus
from ordering.order.repository import OrderRepository

logger = structlog.get_logger(__name__)

STEP_REVALIDATE = "revalidate"
STEP_RESERVE = "reserve"
STEP_CREATE_ORDER = "create_order"
STEP_CREATE_LINES = "create_lines"
STEP_CLEAR_CART = "clear_cart"
STEP_SAVE_PROFILE = "save_profile"

# Give up looking for a free key after this many cancelled orders share a base
MAX_KEY_SUFFIX = 100

MAX_PHONE_LENGTH = 30
MAX_ADDRESS_LENGTH = 500


@dataclass
class PlacementResult:
    order: Order
    resumed: bool = False
    warnings: list[str] = field(default_factory=list)

    @property
    def lines(self) -> list[OrderLine]:
        return self.order.sorted_lines()


class OrderPlacementSaga:
    def __init__(
        self,
        ledger: InventoryLedger,
        cart_service: CartService,
        settings: Settings | None = None,
        order_locks: KeyedLocks | None = None,
    ) -> None:
        self.ledger = ledger
        self.cart_service = cart_service
        self.settings = settings or Settings()
        self.order_locks = order_locks or KeyedLocks()

    @property
    def orders(self) -> OrderRepository:
        return current_domain.repository_for(Order)

    @property
    def profiles(self) -> ProfileRepository:
        return current_domain.repository_for(DeliveryProfile)

    # -------------------------------------------------------------------
    # Entry point
    # -------------------------------------------------------------------
    def place_order(
        self,
        session: Session,
        phone: str,
        address: str,
        idempotency_key: str | None = None,
    ) -> PlacementResult:
        user_id = require_user(session)
        phone, address = self._validate_delivery(phone, address)

        # Cart mutations wait until placement has either cleared the cart or given up
        with self.cart_service.locks.hold(cart_id_for(user_id)):
            add_context(user_id=user_id)
            try:
                return self._place(session, user_id, phone, address, idempotency_key)
            finally:
                clear_context("user_id", "placement_key")

    def _place(
        self,
        session: Session,
        user_id: str,
        phone: str,
        address: str,
        idempotency_key: str | None,
    ) -> PlacementResult:
        cart = self.cart_service.carts.find_by_user(user_id)

        if idempotency_key:
            placement_key, existing = self._resolve_key(self._explicit_key(user_id, idempotency_key))
            add_context(placement_key=placement_key)
            if existing is not None:
                return self._resume(session, existing, cart, phone, address)

        if cart is None or cart.is_empty:
            raise EmptyCart(cart.id if cart else None)

        if not idempotency_key:
            placement_key, existing = self._resolve_key(f"cart-{cart.fingerprint()}")
            add_context(placement_key=placement_key)
            if existing is not None:
                return self._resume(session, existing, cart, phone, address)

        logger.info("Order placement started", cart_id=cart.id, line_count=len(cart.lines))

        # Step 1
        snapshot = self._revalidate(cart)

        # Step 1b
        reserve = self.settings.reserve_stock_on_placement
        reserved = self._reserve(snapshot, placement_key, user_id) if reserve else []

        # Step 2
        pricing = price(
            snapshot,
            shipping_fee=self.settings.shipping_fee,
            free_shipping_threshold=self.settings.free_shipping_threshold,
        )
        order = Order.create(
            user_id=user_id,
            snapshot=snapshot,
            pricing=pricing,
            shipping_address=address,
            phone=phone,
            placement_key=placement_key,
            stock_reserved=reserve,
            currency=self.settings.currency,
        )
        try:
            self.orders.create(order)
        except DuplicateRow:
            # Another placement with the same key committed first. Its holds
            # are keyed the same and are now its order's, so nothing is released.
            existing = self.orders.find_by_placement_key(placement_key)
            if existing is None:
                raise
            return self._resume(session, existing, cart, phone, address)
        except UpstreamFailure as exc:
            order = self._recover_header(order, reserved, exc)

        logger.info(
            "Order header created",
            order_id=order.id,
            subtotal=order.subtotal,
            shipping_cost=order.shipping_cost,
            total_amount=order.total_amount,
        )

        # Step 3
        order = self._write_lines(order)

        warnings: list[str] = []
        # Step 4
        self._clear_cart(session, order, warnings)
        # Step 5
        self._save_profile(user_id, phone, address, order, warnings)

        logger.info("Order placed", order_id=order.id, total_amount=order.total_amount, warnings=warnings)
        return PlacementResult(order=order, resumed=False, warnings=warnings)

    # -------------------------------------------------------------------
    # Pre-checks
    # -------------------------------------------------------------------
    @staticmethod
    def _validate_delivery(phone: str | None, address: str | None) -> tuple[str, str]:
        errors: dict[str, list[str]] = {}
        phone = (phone or "").strip()
        address = (address or "").strip()
        if not phone:
            errors["phone"] = ["Phone is required"]
        elif len(phone) > MAX_PHONE_LENGTH:
            errors["phone"] = [f"Phone must be at most {MAX_PHONE_LENGTH} characters"]
        if not address:
            errors["address"] = ["Address is required"]
        elif len(address) > MAX_ADDRESS_LENGTH:
            errors["address"] = [f"Address must be at most {MAX_ADDRESS_LENGTH} characters"]
        if errors:
            raise ValidationError(errors)
        return phone, address

    @staticmethod
    def _explicit_key(user_id: str, idempotency_key: str) -> str:
        digest = hashlib.sha256(f"{user_id}:{idempotency_key.strip()}".encode()).hexdigest()[:40]
        return f"key-{digest}"

    def _resolve_key(self, base_key: str) -> tuple[str, Order | None]:
        """Find the key this attempt places under, and the live order already holding it.

        A cancelled order does not block a new placement: the next free
        ``base:n`` suffix is used instead.
        """
        for suffix in range(MAX_KEY_SUFFIX):
            key = base_key if suffix == 0 else f"{base_key}:{suffix}"
            existing = self.orders.find_by_placement_key(key)
            if existing is None:
                return key, None
            if existing.status != OrderStatus.CANCELLED.value:
                return key, existing
        raise ValidationError({"idempotency_key": ["Too many cancelled orders for this placement key"]})

    # -------------------------------------------------------------------
    # Step 1: revalidate
    # -------------------------------------------------------------------
    def _revalidate(self, cart: Cart) -> list[LineSnapshot]:
        snapshot = []
        for line in cart.sorted_lines():
            product = self.ledger.products.find(line.product_id)
            if product is None or not product.is_available:
                logger.info("Order placement rejected", step=STEP_REVALIDATE, product_id=line.product_id)
                raise InsufficientStock(
                    product_id=line.product_id,
                    requested=line.quantity,
                    available=0,
                    product_name=product.name if product else None,
                )
            if line.quantity > product.stock_quantity:
                logger.info(
                    "Order placement rejected",
                    step=STEP_REVALIDATE,
                    product_id=product.id,
                    requested=line.quantity,
                    available=product.stock_quantity,
                )
                raise InsufficientStock(
                    product_id=product.id,
                    requested=line.quantity,
                    available=product.stock_quantity,
                    product_name=product.name,
                )
            snapshot.append(
                LineSnapshot(
                    product_id=product.id,
                    product_name=product.name,
                    quantity=line.quantity,
                    unit_price=product.price,
                )
            )
        return snapshot

    # -------------------------------------------------------------------
    # Step 1b: reserve, with compensation
    # -------------------------------------------------------------------
    def _reserve(self, snapshot: list[LineSnapshot], placement_key: str, user_id: str) -> list[LineSnapshot]:
        reserved: list[LineSnapshot] = []
        try:
            for line in snapshot:
                try:
                    self.ledger.hold(line.product_id, line.quantity, placement_key, user_id)
                except NotFound:
                    # Deleted after revalidation
                    raise InsufficientStock(
                        product_id=line.product_id,
                        requested=line.quantity,
                        available=0,
                        product_name=line.product_name,
                    ) from None
                reserved.append(line)
        except StorefrontError as exc:
            logger.info("Stock reservation failed", step=STEP_RESERVE, error=exc.kind)
            self._compensate(placement_key, reserved)
            raise
        return reserved

    def _compensate(self, placement_key: str, reserved: list[LineSnapshot]) -> None:
        """Release this placement's holds. Holds that cannot be released are left for the sweeper."""
        held = []
        for line in reserved:
            try:
                self.ledger.release_hold(line.product_id, placement_key)
            except StorefrontError as exc:
                held.append({"product_id": line.product_id, "quantity": line.quantity, "error": exc.kind})
        if held:
            logger.error("Stock hold could not be released", held=held)

    # -------------------------------------------------------------------
    # Step 2: header recovery
    # -------------------------------------------------------------------
    def _recover_header(self, order: Order, reserved: list[LineSnapshot], exc: UpstreamFailure) -> Order:
        """Decide whether a failed header insert actually committed."""
        try:
            landed = self.orders.find_by_placement_key(order.placement_key)
        except UpstreamFailure:
            # The holds stay on their products under this key: a retry reuses
            # them, and the sweeper releases them if no order ever appears
            logger.error(
                "Order header state unknown",
                step=STEP_CREATE_ORDER,
                order_id=order.id,
                held=[{"product_id": line.product_id, "quantity": line.quantity} for line in reserved],
            )
            raise PlacementIncomplete(order.id, order.placement_key, STEP_CREATE_ORDER, cause=exc) from exc

        if landed is None:
            logger.warning("Order header not created", step=STEP_CREATE_ORDER, error=str(exc.messages))
            self._compensate(order.placement_key, reserved)
            raise UpstreamFailure(
                {"order": ["The order could not be created and nothing was placed; retrying is safe"]},
                retryable=True,
            ) from exc

        logger.info("Order header committed despite store error", order_id=landed.id)
        return landed

    # -------------------------------------------------------------------
    # Step 3: lines
    # -------------------------------------------------------------------
    def _write_lines(self, order: Order) -> Order:
        """Write the lines the stored order is still missing, one ``add`` each.

        Runs under the order's lock against a fresh read, so the orphan
        sweeper either sees the finished order or cancels it before any line
        is written here.
        """
        with self.order_locks.hold(order.id):
            try:
                current = self.orders.get(order.id)
            except UpstreamFailure as exc:
                raise self._lines_incomplete(order, exc) from exc

            if current.status == OrderStatus.CANCELLED.value:
                logger.warning("Order cancelled before its lines were written", order_id=current.id)
                raise UpstreamFailure(
                    {"order": [f"Order {current.id} was cancelled before it was completed; retrying places it again"]},
                    retryable=True,
                )

            try:
                for line in current.missing_lines():
                    current.write_line(line)
                    self.orders.add(current)
            except UpstreamFailure as exc:
                raise self._lines_incomplete(order, exc) from exc

            if current.stock_reserved:
                self._settle_holds(current)
        return current

    @staticmethod
    def _lines_incomplete(order: Order, exc: UpstreamFailure) -> PlacementIncomplete:
        logger.error("Order lines incomplete", step=STEP_CREATE_LINES, order_id=order.id, expected=order.line_count)
        return PlacementIncomplete(order.id, order.placement_key, STEP_CREATE_LINES, cause=exc)

    def _settle_holds(self, order: Order) -> None:
        """Hand the placement's held units over to the completed order.

        A hold left behind here is settled by the sweeper later.
        """
        for line in order.snapshot():
            try:
                self.ledger.settle_hold(line.product_id, order.placement_key, keep=order.quantity_for(line.product_id))
            except StorefrontError as exc:
                logger.warning("Stock hold not settled", order_id=order.id, product_id=line.product_id, error=exc.kind)

    # -------------------------------------------------------------------
    # Steps 4 and 5: best-effort
    # -------------------------------------------------------------------
    def _clear_cart(self, session: Session, order: Order, warnings: list[str]) -> None:
        try:
            self.cart_service.clear(session)
        except StorefrontError as exc:
            logger.warning("Cart not cleared after placement", step=STEP_CLEAR_CART, order_id=order.id, error=exc.kind)
            warnings.append(STEP_CLEAR_CART)

    def _save_profile(self, user_id: str, phone: str, address: str, order: Order, warnings: list[str]) -> None:
        try:
            self.profiles.save(user_id, phone, address)
        except StorefrontError as exc:
            logger.warning(
                "Delivery profile not saved after placement",
                step=STEP_SAVE_PROFILE,
                order_id=order.id,
                error=exc.kind,
            )
            warnings.append(STEP_SAVE_PROFILE)

    # -------------------------------------------------------------------
    # Resume
    # -------------------------------------------------------------------
    def _resume(
        self,
        session: Session,
        order: Order,
        cart: Cart | None,
        phone: str,
        address: str,
    ) -> PlacementResult:
        """Finish an order whose header an earlier attempt already wrote."""
        logger.info(
            "Resuming order placement",
            order_id=order.id,
            lines_written=len(order.lines),
            line_count=order.line_count,
        )
        order = self._write_lines(order)

        warnings: list[str] = []
        # Only the cart the order was taken from is cleared, never newer contents
        if cart is not None and not cart.is_empty and self._cart_matches(cart, order):
            self._clear_cart(session, order, warnings)
        self._save_profile(order.user_id, phone, address, order, warnings)
        return PlacementResult(order=order, resumed=True, warnings=warnings)

    @staticmethod
    def _cart_matches(cart: Cart, order: Order) -> bool:
        in_cart = {(str(line.product_id), line.quantity) for line in cart.lines}
        in_order = {(str(line.product_id), line.quantity) for line in order.snapshot()}
        return in_cart == in_order
