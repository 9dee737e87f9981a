import os
from pathlib import Path

import pytest


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Pytest hook to run before collecting tests.

    Selects the config overlay, then initializes the storefront domain. Importing
    the wiring module registers every element before ``init`` runs.
    """
    os.environ["PROTEAN_ENV"] = session.config.option.env

    import storefront  # noqa: F401
    from shared.domain import storefront as domain

    domain.init(traverse=False)


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = Path(item.fspath)

        if "/domain/" in str(test_path):
            item.add_marker(pytest.mark.domain)
        elif "/application/" in str(test_path):
            item.add_marker(pytest.mark.application)
        elif "/integration/" in str(test_path):
            item.add_marker(pytest.mark.integration)
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


@pytest.fixture(scope="session")
def domain():
    from shared.domain import storefront

    return storefront


@pytest.fixture(scope="session", autouse=True)
def setup_db(domain):
    from shared.db import drop_db, setup_db

    setup_db(domain)

    yield

    drop_db(domain)


@pytest.fixture(autouse=True)
def run_around_tests(domain):
    """Push domain context before each test, cleanup after."""
    ctx = domain.domain_context()
    ctx.push()

    yield

    from protean import current_domain

    for _, provider in current_domain.providers.items():
        provider._data_reset()

    ctx.pop()


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------
@pytest.fixture()
def settings(domain):
    from shared.config import Settings

    return Settings.from_domain(domain)


@pytest.fixture()
def storefront(settings):
    from storefront import build_storefront

    return build_storefront(settings)


@pytest.fixture()
def ledger(storefront):
    return storefront.ledger


@pytest.fixture()
def cart_service(storefront):
    return storefront.cart


@pytest.fixture()
def checkout(storefront):
    return storefront.checkout


# ---------------------------------------------------------------------------
# Sessions and catalogue
# ---------------------------------------------------------------------------
@pytest.fixture()
def alice():
    from identity.session import Session

    return Session(user_id="alice")


@pytest.fixture()
def bob():
    from identity.session import Session

    return Session(user_id="bob")


@pytest.fixture()
def admin():
    from identity.session import Role, Session

    return Session(user_id="admin-1", role=Role.ADMIN.value)


@pytest.fixture()
def make_product():
    """Factory: insert a product and return it."""
    from inventory.product.product import Product
    from protean import current_domain

    def _make(name="Widget", price=1000.0, stock=5, is_available=True, product_id=None):
        values = {"name": name, "price": price, "stock_quantity": stock, "is_available": is_available}
        if product_id is not None:
            values["id"] = product_id
        return current_domain.repository_for(Product).add(Product(**values))

    return _make


@pytest.fixture()
def edit_product():
    """Change fields of a stored product directly, as the catalogue would."""
    from inventory.product.product import Product
    from protean import current_domain

    def _edit(product_id, **changes):
        repo = current_domain.repository_for(Product)
        product = repo.get(product_id)
        for field, value in changes.items():
            setattr(product, field, value)
        return repo.add(product)

    return _edit


@pytest.fixture()
def stock_of():
    from inventory.product.product import Product
    from protean import current_domain

    def _stock(product_id):
        return current_domain.repository_for(Product).get(product_id).stock_quantity

    return _stock


# ---------------------------------------------------------------------------
# Fault injection
# ---------------------------------------------------------------------------
@pytest.fixture()
def fail_once():
    """Make the next matching call of a repository method raise, as a store outage would.

    With ``after=True`` the real call runs first, so the write lands and only
    its response is lost.
    """
    from unittest.mock import patch

    from shared.errors import UpstreamFailure

    def _patch(cls, name, when=None, after=False):
        original = getattr(cls, name)
        armed = [True]

        def flaky(self, *args, **kwargs):
            if not armed[0] or (when is not None and not when(*args, **kwargs)):
                return original(self, *args, **kwargs)
            armed[0] = False
            if after:
                original(self, *args, **kwargs)
            raise UpstreamFailure({"store": ["Connection reset"]})

        return patch.object(cls, name, flaky)

    return _patch


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------
@pytest.fixture()
def client(storefront):
    """TestClient over the full app, wired to this test's storefront."""
    from app import app
    from fastapi.testclient import TestClient
    from storefront import get_storefront

    app.dependency_overrides[get_storefront] = lambda: storefront
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture()
def as_user():
    def _headers(user_id="alice", role="customer"):
        return {"X-User-Id": user_id, "X-User-Role": role}

    return _headers
