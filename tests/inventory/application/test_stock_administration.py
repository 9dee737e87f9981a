"""Tests for admin stock management."""

import pytest
from shared.errors import NotAuthenticated, PermissionDenied, ValidationError


class TestAdjustStock:
    def test_admin_adjusts(self, storefront, admin, make_product):
        product = make_product(stock=5)
        change = storefront.stock.adjust_stock(admin, product.id, -2)
        assert change.new_stock == 3

    def test_adjustment_floors_at_zero(self, storefront, admin, make_product):
        product = make_product(stock=5)
        assert storefront.stock.adjust_stock(admin, product.id, -9).new_stock == 0

    def test_customer_is_denied(self, storefront, alice, make_product):
        product = make_product(stock=5)
        with pytest.raises(PermissionDenied):
            storefront.stock.adjust_stock(alice, product.id, 1)
        assert storefront.ledger.available(product.id) == 5

    def test_anonymous_is_rejected(self, storefront, make_product):
        from identity.session import ANONYMOUS

        product = make_product(stock=5)
        with pytest.raises(NotAuthenticated):
            storefront.stock.adjust_stock(ANONYMOUS, product.id, 1)


class TestSetStock:
    def test_sets_absolute_value(self, storefront, admin, make_product):
        product = make_product(stock=5)
        assert storefront.stock.set_stock(admin, product.id, 12).new_stock == 12

    def test_negative_rejected(self, storefront, admin, make_product):
        product = make_product(stock=5)
        with pytest.raises(ValidationError):
            storefront.stock.set_stock(admin, product.id, -1)


class TestLowStockReport:
    def test_lists_products_below_threshold(self, storefront, admin, make_product):
        make_product(name="Plenty", stock=50)
        low = make_product(name="Scarce", stock=2)

        report = storefront.stock.low_stock_report(admin)
        assert [p.id for p in report] == [low.id]

    def test_custom_threshold(self, storefront, admin, make_product):
        make_product(name="A", stock=50)
        make_product(name="B", stock=20)
        assert len(storefront.stock.low_stock_report(admin, threshold=30)) == 1
