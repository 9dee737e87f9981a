"""Integration tests for Order and order admin endpoints via TestClient."""

from ordering.order.repository import OrderRepository

ORDER = {"phone": "+91-98765-43210", "address": "12 MG Road, Bengaluru"}


def _fill_cart(client, headers, product, quantity=1):
    response = client.post("/cart/lines", json={"product_id": product.id, "quantity": quantity}, headers=headers)
    assert response.status_code == 201


class TestPlaceOrder:
    def test_place_order(self, client, as_user, make_product):
        product = make_product(name="Kettle", price=1000.0, stock=5)
        _fill_cart(client, as_user(), product, 3)

        response = client.post("/orders", json=ORDER, headers=as_user())

        assert response.status_code == 201
        body = response.json()
        assert body["resumed"] is False
        assert body["order"]["status"] == "pending"
        assert body["order"]["total_amount"] == 3099.0
        assert body["order"]["lines"][0]["line_total"] == 3000.0

    def test_repeat_with_key_returns_same_order(self, client, as_user, make_product):
        product = make_product(stock=5)
        _fill_cart(client, as_user(), product)
        payload = {**ORDER, "idempotency_key": "checkout-1"}

        first = client.post("/orders", json=payload, headers=as_user())
        second = client.post("/orders", json=payload, headers=as_user())

        assert second.status_code == 200
        assert second.json()["resumed"] is True
        assert second.json()["order"]["order_id"] == first.json()["order"]["order_id"]

    def test_empty_cart(self, client, as_user):
        response = client.post("/orders", json=ORDER, headers=as_user())
        assert response.status_code == 422
        assert response.json()["error"] == "empty_cart"

    def test_blank_phone(self, client, as_user, make_product):
        _fill_cart(client, as_user(), make_product(stock=5))
        response = client.post("/orders", json={**ORDER, "phone": " "}, headers=as_user())
        assert response.status_code == 422
        assert "phone" in response.json()["messages"]

    def test_incomplete_placement_is_bad_gateway(self, client, as_user, make_product, fail_once):
        _fill_cart(client, as_user(), make_product(stock=5))

        with fail_once(OrderRepository, "add", when=lambda order: bool(order.lines)):
            response = client.post("/orders", json=ORDER, headers=as_user())

        assert response.status_code == 502
        body = response.json()
        assert body["error"] == "placement_incomplete"
        assert body["step"] == "create_lines"
        assert body["retryable"] is False

        retry = client.post("/orders", json=ORDER, headers=as_user())
        assert retry.status_code == 200
        assert retry.json()["order"]["order_id"] == body["order_id"]


class TestOrderQueries:
    def test_list_and_get_own_orders(self, client, as_user, make_product):
        _fill_cart(client, as_user(), make_product(stock=5))
        order_id = client.post("/orders", json=ORDER, headers=as_user()).json()["order"]["order_id"]

        listing = client.get("/orders", headers=as_user()).json()
        assert [order["order_id"] for order in listing] == [order_id]

        assert client.get(f"/orders/{order_id}", headers=as_user()).status_code == 200
        assert client.get(f"/orders/{order_id}", headers=as_user("bob")).status_code == 404

    def test_cancel(self, client, as_user, make_product):
        product = make_product(stock=5)
        _fill_cart(client, as_user(), product, 2)
        order_id = client.post("/orders", json=ORDER, headers=as_user()).json()["order"]["order_id"]

        response = client.post(f"/orders/{order_id}/cancel", headers=as_user())

        assert response.json()["status"] == "cancelled"
        stock = client.get(f"/products/{product.id}/stock").json()
        assert stock["stock_quantity"] == 5


class TestAdminEndpoints:
    def test_admin_moves_order_along(self, client, as_user, make_product):
        _fill_cart(client, as_user(), make_product(stock=5))
        order_id = client.post("/orders", json=ORDER, headers=as_user()).json()["order"]["order_id"]
        admin = as_user("root", "admin")

        response = client.put(f"/admin/orders/{order_id}/status", json={"status": "processing"}, headers=admin)
        assert response.json()["status"] == "processing"

        listing = client.get("/admin/orders", params={"status": "processing"}, headers=admin).json()
        assert [order["order_id"] for order in listing] == [order_id]

    def test_invalid_transition(self, client, as_user, make_product):
        _fill_cart(client, as_user(), make_product(stock=5))
        order_id = client.post("/orders", json=ORDER, headers=as_user()).json()["order"]["order_id"]

        response = client.put(
            f"/admin/orders/{order_id}/status",
            json={"status": "delivered"},
            headers=as_user("root", "admin"),
        )
        assert response.status_code == 422

    def test_customers_are_forbidden(self, client, as_user):
        assert client.get("/admin/orders", headers=as_user()).status_code == 403

    def test_sweep_orphans(self, client, as_user, make_product, fail_once):
        _fill_cart(client, as_user(), make_product(stock=5))
        with fail_once(OrderRepository, "add", when=lambda order: bool(order.lines)):
            orphan_id = client.post("/orders", json=ORDER, headers=as_user()).json()["order_id"]

        response = client.post("/admin/orders/sweep-orphans", headers=as_user("root", "admin"))

        assert response.json()["cancelled_order_ids"] == [orphan_id]
