"""Tests for order listings and the owner-or-admin detail view."""

from datetime import UTC, datetime
from unittest.mock import patch

import pytest
from identity.session import ANONYMOUS
from shared.errors import NotAuthenticated, NotFound, PermissionDenied, ValidationError


def _place(storefront, session, product, qty=1):
    storefront.cart.add_line(session, product.id, qty)
    return storefront.checkout.place_order(session, "555", "1 Main St").order


class TestListOrders:
    def test_newest_first_with_lines(self, storefront, alice, make_product):
        product = make_product(stock=10)
        with patch("ordering.order.order.utcnow", return_value=datetime(2026, 1, 1, 10, tzinfo=UTC)):
            older = _place(storefront, alice, product)
        with patch("ordering.order.order.utcnow", return_value=datetime(2026, 1, 2, 10, tzinfo=UTC)):
            newer = _place(storefront, alice, product, qty=2)

        orders = storefront.history.list_orders(alice)

        assert [order.id for order in orders] == [newer.id, older.id]
        assert orders[0].lines[0].quantity == 2

    def test_only_own_orders(self, storefront, alice, bob, make_product):
        product = make_product(stock=10)
        _place(storefront, alice, product)
        assert storefront.history.list_orders(bob) == []

    def test_requires_authentication(self, storefront):
        with pytest.raises(NotAuthenticated):
            storefront.history.list_orders(ANONYMOUS)


class TestListAllOrders:
    def test_admin_sees_everyone(self, storefront, alice, bob, admin, make_product):
        product = make_product(stock=10)
        _place(storefront, alice, product)
        _place(storefront, bob, product)
        assert len(storefront.history.list_all_orders(admin)) == 2

    def test_filter_by_status(self, storefront, alice, bob, admin, make_product):
        product = make_product(stock=10)
        first = _place(storefront, alice, product)
        _place(storefront, bob, product)
        storefront.order_status.update_status(admin, first.id, "processing")

        processing = storefront.history.list_all_orders(admin, "processing")
        assert [order.id for order in processing] == [first.id]

    def test_unknown_status_filter(self, storefront, admin):
        with pytest.raises(ValidationError):
            storefront.history.list_all_orders(admin, "lost")

    def test_customers_denied(self, storefront, alice):
        with pytest.raises(PermissionDenied):
            storefront.history.list_all_orders(alice)


class TestGetOrder:
    def test_owner_and_admin_can_read(self, storefront, alice, admin, make_product):
        order = _place(storefront, alice, make_product(stock=10))
        assert storefront.history.get_order(alice, order.id).id == order.id
        assert storefront.history.get_order(admin, order.id).id == order.id

    def test_other_users_get_not_found(self, storefront, alice, bob, make_product):
        order = _place(storefront, alice, make_product(stock=10))
        with pytest.raises(NotFound):
            storefront.history.get_order(bob, order.id)
