"""
Pytest fixtures for rosterdesk backend tests.

Provides the test database, an in-memory WooCommerce feed and a test client.
"""

import math
from decimal import Decimal

import pytest
from rosterdesk import create_app
from rosterdesk.extensions import db
from rosterdesk.models import Order, Product, Registration, RegistrationSource, RegistrationStatus
from rosterdesk.services.order_feed import FeedError, FeedPage


class FakeFeed:
    """
    Stands in for WooCommerceClient: same three calls, data held in lists.

    Set `error` to a FeedError to make every call fail with it.
    """

    def __init__(self, orders=None, products=None):
        self.orders = list(orders or [])
        self.products = list(products or [])
        self.error = None
        self.calls = []

    def _page(self, items, page, per_page):
        total_pages = max(1, math.ceil(len(items) / per_page))
        start = (page - 1) * per_page
        return FeedPage(items=items[start:start + per_page], total_pages=total_pages)

    def list_orders(self, page=1, per_page=100, orderby="date", order="desc", status=None):
        self.calls.append(("orders", page))
        if self.error:
            raise self.error
        items = sorted(self.orders, key=lambda o: (o.get("date_created") or "") if isinstance(o, dict) else "", reverse=True)
        if status:
            wanted = set(status.split(","))
            items = [o for o in items if isinstance(o, dict) and o.get("status") in wanted]
        return self._page(items, page, per_page)

    def list_products(self, page=1, per_page=100, status="any"):
        self.calls.append(("products", page))
        if self.error:
            raise self.error
        return self._page(self.products, page, per_page)

    def get_order(self, order_id):
        if self.error:
            raise self.error
        for order in self.orders:
            if isinstance(order, dict) and order.get("id") == order_id:
                return order
        raise FeedError(f"WooCommerce returned HTTP 404 for orders/{order_id}", status_code=404)


def feed_order(order_id, *, first="Jane", last="Doe", email="jane@example.com", status="processing",
               items=None, total="120.00", date_created="2026-09-01T10:00:00"):
    """A WooCommerce order payload as the REST API returns it."""
    return {
        "id": order_id,
        "number": str(order_id),
        "status": status,
        "date_created": date_created,
        "total": total,
        "payment_method": "stripe",
        "payment_method_title": "Credit Card",
        "billing": {
            "first_name": first,
            "last_name": last,
            "email": email,
            "phone": "555-0100",
            "address_1": "1 Rink Road",
        },
        "line_items": items if items is not None else [
            {"id": 1, "product_id": 10, "name": "Power Skating 1.0 - 60% FULL", "quantity": 1, "total": total},
        ],
    }


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'FEED_PAGE_SIZE': 2,
        'FEED_MAX_PAGES': 50,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def feed(app):
    """In-memory order feed, picked up by open_order_feed()."""
    fake = FakeFeed()
    app.extensions["order_feed"] = fake
    yield fake
    app.extensions.pop("order_feed", None)


@pytest.fixture(scope='function')
def make_order(db_session):
    """Insert an already-synced order."""
    def _make(order_id, items=None, **fields):
        defaults = dict(
            order_id=order_id,
            order_number=str(order_id),
            status="processing",
            customer_first_name="Jane",
            customer_last_name="Doe",
            customer_email="jane@example.com",
            customer_phone="555-0100",
            total=Decimal("120.00"),
            products=items if items is not None else [
                {"id": 1, "product_id": 10, "name": "Power Skating 1.0", "quantity": 1, "total": "120.00"},
            ],
        )
        defaults.update(fields)
        order = Order(**defaults)
        db_session.add(order)
        db_session.commit()
        return order
    return _make


@pytest.fixture(scope='function')
def make_registration(db_session):
    def _make(program_name, player_name="Sam Skater", **fields):
        defaults = dict(
            program_name=program_name,
            player_name=player_name,
            player_email=f"{player_name.split()[0].lower()}@example.com",
            source=RegistrationSource.MANUAL,
            status=RegistrationStatus.ACTIVE,
            payment_method="e-transfer",
            amount=Decimal("100.00"),
        )
        defaults.update(fields)
        registration = Registration(**defaults)
        db_session.add(registration)
        db_session.commit()
        return registration
    return _make


@pytest.fixture(scope='function')
def published(db_session):
    """Publish products by name."""
    def _publish(*names, status="publish"):
        start = db_session.query(Product).count() + 1
        for offset, name in enumerate(names):
            db_session.add(Product(product_id=1000 + start + offset, name=name, status=status))
        db_session.commit()
    return _publish


@pytest.fixture(scope='function')
def locked_commit(db_session, monkeypatch):
    """
    Call it to make the next db.session.commit() fail as a locked database
    would. Later commits go through; `failures` counts the refused ones.
    """
    from sqlalchemy.exc import OperationalError

    real_commit = db.session.commit

    class _Lock:
        armed = False
        failures = 0

        def __call__(self):
            self.armed = True

        def commit(self):
            if self.armed:
                self.armed = False
                self.failures += 1
                raise OperationalError("COMMIT", {}, Exception("database is locked"))
            return real_commit()

    lock = _Lock()
    monkeypatch.setattr(db.session, "commit", lock.commit)
    return lock
