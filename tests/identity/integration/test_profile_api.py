"""Integration tests for the delivery profile endpoint."""


class TestProfileEndpoint:
    def test_empty_before_first_order(self, client, as_user):
        body = client.get("/profile", headers=as_user()).json()
        assert body == {"user_id": "alice", "phone": None, "address": None}

    def test_prefilled_after_order(self, client, as_user, make_product):
        product = make_product(stock=5)
        client.post("/cart/lines", json={"product_id": product.id}, headers=as_user())
        client.post("/orders", json={"phone": "555", "address": "1 Main St"}, headers=as_user())

        body = client.get("/profile", headers=as_user()).json()
        assert body["phone"] == "555"
        assert body["address"] == "1 Main St"

    def test_requires_authentication(self, client):
        assert client.get("/profile").status_code == 401
