"""Tests for the Cart aggregate: derived identities, line management and fingerprint."""

from ordering.cart.cart import Cart, cart_id_for, line_id_for


class TestDerivedIdentities:
    def test_cart_id_is_stable_per_user(self):
        assert cart_id_for("alice") == cart_id_for("alice")
        assert cart_id_for("alice") != cart_id_for("bob")

    def test_line_id_is_stable_per_cart_and_product(self):
        cart_id = cart_id_for("alice")
        assert line_id_for(cart_id, "p1") == line_id_for(cart_id, "p1")
        assert line_id_for(cart_id, "p1") != line_id_for(cart_id, "p2")

    def test_create_uses_derived_ids(self):
        cart = Cart.create("alice")
        line = cart.put_line("p1", 2)
        assert cart.id == cart_id_for("alice")
        assert line.id == line_id_for(cart.id, "p1")
        assert cart.revision == 0


class TestLineManagement:
    def test_empty_cart(self):
        cart = Cart.create("alice")
        assert cart.is_empty
        assert cart.sorted_lines() == []

    def test_put_line_merges_into_existing_line(self):
        cart = Cart.create("alice")
        first = cart.put_line("p1", 2)
        again = cart.put_line("p1", 5)

        assert len(cart.lines) == 1
        assert again.id == first.id
        assert cart.line_for("p1").quantity == 5
        assert cart.line_for("missing") is None

    def test_find_line_by_id(self):
        cart = Cart.create("alice")
        line = cart.put_line("p1", 1)
        assert cart.find_line(line.id) is line
        assert cart.find_line("nope") is None

    def test_drop_line(self):
        cart = Cart.create("alice")
        line = cart.put_line("p1", 1)
        cart.put_line("p2", 1)
        cart.drop_line(line)
        assert [str(remaining.product_id) for remaining in cart.lines] == ["p2"]

    def test_clear_empties_and_moves_to_next_revision(self):
        cart = Cart.create("alice")
        cart.put_line("p1", 1)
        cart.put_line("p2", 3)

        assert cart.clear() == 2
        assert cart.is_empty
        assert cart.revision == 1


class TestFingerprint:
    def _cart(self, revision=0, lines=(("p1", 1), ("p2", 2))):
        cart = Cart.create("alice")
        cart.revision = revision
        for product_id, quantity in lines:
            cart.put_line(product_id, quantity)
        return cart

    def test_independent_of_line_order(self):
        a = self._cart(lines=(("p1", 1), ("p2", 2)))
        b = self._cart(lines=(("p2", 2), ("p1", 1)))
        assert a.fingerprint() == b.fingerprint()

    def test_changes_with_quantity(self):
        assert self._cart().fingerprint() != self._cart(lines=(("p1", 2), ("p2", 2))).fingerprint()

    def test_changes_with_revision(self):
        assert self._cart(revision=0).fingerprint() != self._cart(revision=1).fingerprint()
