"""
Shared fixtures for the Product Interest tests.
Run with: pytest tests -v

NOTE: pytest is listed under extras_require["dev"] in setup.py.
Install with: pip install -e ".[dev]"
"""

import os
import re
import shutil
import tempfile

import pytest
from flask import Flask

from product_interest import ProductInterest
from product_interest.core import Config, Database
from product_interest.modules.subscriptions.database import set_product_enabled

LIST_URL = "/admin/product-interest/?page=product-interest-list"
NONCE_PATTERN = re.compile(r'name="wc_product_subs_nonce_name" value="([^"]+)"')


# ---------------------------------------------------------------------------
# App fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def tmp_db_dir():
    """Create a temporary directory for test databases, cleaned up after."""
    d = tempfile.mkdtemp(prefix="product-interest-test-")
    yield d
    shutil.rmtree(d, ignore_errors=True)


@pytest.fixture
def app(tmp_db_dir):
    """Flask app with the Product Interest module registered."""
    app = Flask(__name__)
    app.config["TESTING"] = True
    app.config["SECRET_KEY"] = "test-secret"
    app.config["DB_DIR"] = tmp_db_dir
    app.config["PRODUCT_INTEREST_DB"] = os.path.join(tmp_db_dir, "product_interest.db")
    ProductInterest(app)
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin_client(client):
    """Test client with an admin session."""
    with client.session_transaction() as sess:
        sess["admin_id"] = 1
    return client


@pytest.fixture
def fetch_nonce(admin_client):
    """Load the list page and pull the anti-forgery token out of the form."""
    def _fetch():
        response = admin_client.get(LIST_URL)
        match = NONCE_PATTERN.search(response.get_data(as_text=True))
        assert match, "nonce field missing from the list page"
        return match.group(1)
    return _fetch


# ---------------------------------------------------------------------------
# Data fixtures
# ---------------------------------------------------------------------------

class Store:
    """Writes fixture rows straight into the module database."""

    def __init__(self, app):
        self.app = app

    def _execute(self, sql, params):
        with self.app.app_context():
            conn = Database.connect()
            try:
                conn.execute(sql, params)
                conn.commit()
            finally:
                conn.close()

    def product(self, product_id, name, enabled=True):
        self._execute(
            f"INSERT INTO {Config.PRODUCTS_TABLE} (id, name, slug) VALUES (?, ?, ?)",
            (product_id, name, name.lower().replace(" ", "-")),
        )
        if enabled:
            with self.app.app_context():
                set_product_enabled(product_id)

    def user(self, user_id, login, display_name, email):
        self._execute(
            f"INSERT INTO {Config.USERS_TABLE} (id, user_login, display_name, user_email) VALUES (?, ?, ?, ?)",
            (user_id, login, display_name, email),
        )

    def subscription(self, relationship_id, product_id, customer_id, created):
        self._execute(
            f"INSERT INTO {Config.SUBSCRIPTIONS_TABLE} (relationship_id, product_id, customer_id, created) "
            f"VALUES (?, ?, ?, ?)",
            (relationship_id, product_id, customer_id, created),
        )

    def relationship_ids(self):
        with self.app.app_context():
            conn = Database.connect()
            try:
                rows = conn.execute(
                    f"SELECT relationship_id FROM {Config.SUBSCRIPTIONS_TABLE} ORDER BY relationship_id"
                ).fetchall()
                return [row["relationship_id"] for row in rows]
            finally:
                conn.close()


@pytest.fixture
def store(app):
    return Store(app)


@pytest.fixture
def seeded(store):
    """Products 10 and 20 enabled; product 10 has customer 1 (relationship 100)."""
    store.product(10, "Blue Hoodie")
    store.product(20, "Red Cap")
    store.user(1, "jdoe", "Jamie Doe", "jamie@example.com")
    store.subscription(100, 10, 1, "2024-01-05 10:00:00")
    return store
