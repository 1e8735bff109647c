"""
Pytest fixtures for stockledger backend tests.

Provides an in-memory database, a recording notifier, product/customer
factories and the Flask test client.
"""

import pytest

from stockledger import create_app
from stockledger.extensions import db, NOTIFIER_EXTENSION_KEY
from stockledger.models import BatchStatus, CostingMethod, StockBatch, StockMovement
from stockledger.notifications import Notifier
from stockledger.services import credit_service, products_service


class RecordingNotifier(Notifier):
    """Captures notifications instead of delivering them."""

    def __init__(self):
        self.low_stock = []
        self.replenishment_active = []
        self.fail = False

    def reset(self):
        self.low_stock.clear()
        self.replenishment_active.clear()
        self.fail = False

    def notify_low_stock(self, product, status) -> None:
        if self.fail:
            raise RuntimeError("notifier down")
        self.low_stock.append((product.id, status.level))

    def notify_replenishment_active(self, product, batch) -> None:
        if self.fail:
            raise RuntimeError("notifier down")
        self.replenishment_active.append((product.id, batch.id))


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(
        config_overrides={
            'TESTING': True,
            'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
            'SQLALCHEMY_TRACK_MODIFICATIONS': False,
            'LOW_STOCK_THRESHOLD': 5,
            'CRITICAL_STOCK_THRESHOLD': 2,
            'LOW_STOCK_ALERT_COOLDOWN_HOURS': 24,
            'REORDER_LOOKBACK_DAYS': 30,
        },
        notifier=RecordingNotifier(),
    )

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def notifier(app):
    recorder = app.extensions[NOTIFIER_EXTENSION_KEY]
    recorder.reset()
    return recorder


@pytest.fixture(scope='function')
def db_session(app, notifier):
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
def client(app, db_session):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def make_product(db_session):
    counter = {"n": 0}

    def _make(name="Widget", costing_method=CostingMethod.FIFO, **kwargs):
        counter["n"] += 1
        kwargs.setdefault("sku", f"SKU-{counter['n']:03d}")
        return products_service.create_product(name=name, costing_method=costing_method, **kwargs)

    return _make


@pytest.fixture(scope='function')
def product(make_product):
    """A FIFO product with no stock."""
    return make_product()


@pytest.fixture(scope='function')
def pool_product(make_product):
    """A WEIGHTED_AVERAGE product with no stock."""
    return make_product(name="Rice", costing_method=CostingMethod.WEIGHTED_AVERAGE, price_cents=200)


@pytest.fixture(scope='function')
def customer(db_session):
    return credit_service.create_customer(name="Amina", phone="0700000000")


def movement_total(product_id: int) -> int:
    """SUM(quantity_changed) over a product's movements."""
    return sum(
        m.quantity_changed
        for m in db.session.query(StockMovement).filter_by(product_id=product_id).all()
    )


def active_remaining(product_id: int) -> int:
    return sum(
        b.quantity_remaining
        for b in db.session.query(StockBatch).filter_by(product_id=product_id, status=BatchStatus.ACTIVE)
    )
