"""Tests for detecting and sweeping orphaned orders and abandoned stock holds."""

from datetime import timedelta
from unittest.mock import patch

import pytest
from inventory.product.product import Product
from ordering.checkout.recovery import OrphanedOrderSweeper
from ordering.order.order import Order, OrderStatus
from ordering.order.repository import OrderRepository
from protean import current_domain
from shared.errors import PlacementIncomplete, UpstreamFailure
from shared.types import utcnow


@pytest.fixture()
def orphan(storefront, alice, make_product, fail_once):
    """An order whose header committed but whose only line did not."""
    product = make_product(stock=5)
    storefront.cart.add_line(alice, product.id, 2)
    with fail_once(OrderRepository, "add", when=lambda order: bool(order.lines)):
        with pytest.raises(PlacementIncomplete) as exc:
            storefront.checkout.place_order(alice, "555", "1 Main St")
    return exc.value.order_id, product


def _stored(order_id):
    return current_domain.repository_for(Order).get(order_id)


def _holds(product_id):
    return current_domain.repository_for(Product).get(product_id).holds


class TestFind:
    def test_finds_incomplete_pending_orders(self, storefront, orphan):
        order_id, _ = orphan
        assert [order.id for order in storefront.sweeper.find()] == [order_id]

    def test_ignores_complete_orders(self, storefront, alice, make_product):
        product = make_product(stock=5)
        storefront.cart.add_line(alice, product.id, 1)
        storefront.checkout.place_order(alice, "555", "1 Main St")

        assert storefront.sweeper.find() == []

    def test_respects_grace_period(self, storefront, orphan):
        sweeper = OrphanedOrderSweeper(storefront.order_status, storefront.ledger, grace_seconds=300)
        assert sweeper.find() == []
        assert len(sweeper.find(now=utcnow() + timedelta(seconds=301))) == 1


class TestSweep:
    def test_cancels_and_releases_stock(self, storefront, orphan):
        order_id, product = orphan
        assert storefront.ledger.available(product.id) == 3

        swept = storefront.sweeper.sweep()

        assert [order.id for order in swept] == [order_id]
        assert swept[0].status == OrderStatus.CANCELLED.value
        assert storefront.ledger.available(product.id) == 5
        assert _holds(product.id) == []
        assert storefront.sweeper.find() == []

    def test_resumed_order_is_not_swept(self, storefront, alice, orphan):
        storefront.checkout.place_order(alice, "555", "1 Main St")
        assert storefront.sweeper.sweep() == []

    def test_order_completed_after_it_was_found_is_left_alone(self, storefront, alice, orphan):
        order_id, product = orphan
        stale = storefront.sweeper.find()
        assert [order.id for order in stale] == [order_id]

        # A retry finishes the order between the sweeper's listing and its cancel
        storefront.checkout.place_order(alice, "555", "1 Main St")
        with patch.object(OrphanedOrderSweeper, "find", return_value=stale):
            swept = storefront.sweeper.sweep()

        assert swept == []
        stored = _stored(order_id)
        assert stored.status == OrderStatus.PENDING.value
        assert stored.is_complete
        assert storefront.ledger.available(product.id) == 3

    def test_lines_are_not_written_to_an_order_swept_first(self, storefront, orphan):
        order_id, product = orphan
        stale = _stored(order_id)
        storefront.sweeper.sweep()

        with pytest.raises(UpstreamFailure) as exc:
            storefront.checkout._write_lines(stale)

        assert not isinstance(exc.value, PlacementIncomplete)
        assert exc.value.retryable
        stored = _stored(order_id)
        assert stored.status == OrderStatus.CANCELLED.value
        assert stored.lines == []
        assert storefront.ledger.available(product.id) == 5

    def test_failed_cancel_is_left_for_the_next_sweep(self, storefront, orphan, fail_once):
        order_id, _ = orphan

        with fail_once(OrderRepository, "add"):
            assert storefront.sweeper.sweep() == []

        assert _stored(order_id).status == OrderStatus.PENDING.value
        assert [order.id for order in storefront.sweeper.sweep()] == [order_id]


class TestAbandonedHolds:
    def test_hold_without_an_order_is_released(self, storefront, make_product):
        product = make_product(stock=5)
        storefront.ledger.hold(product.id, 2, "cart-abandoned", "alice")

        changes = storefront.sweeper.release_abandoned_holds()

        assert [change.delta for change in changes] == [2]
        assert storefront.ledger.available(product.id) == 5
        assert _holds(product.id) == []

    def test_recent_holds_are_kept(self, storefront, make_product):
        product = make_product(stock=5)
        storefront.ledger.hold(product.id, 2, "cart-in-flight", "alice")
        sweeper = OrphanedOrderSweeper(storefront.order_status, storefront.ledger, grace_seconds=300)

        assert sweeper.release_abandoned_holds() == []
        assert storefront.ledger.available(product.id) == 3
        assert len(_holds(product.id)) == 1

    def test_hold_of_a_live_order_is_settled_not_released(self, storefront, orphan):
        _, product = orphan
        assert len(_holds(product.id)) == 1

        storefront.sweeper.release_abandoned_holds()

        assert _holds(product.id) == []
        assert storefront.ledger.available(product.id) == 3
