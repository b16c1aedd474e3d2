"""
Pytest fixtures for supplytrack backend tests.

Provides test database setup, business accounts, a batch fixture, a fake
pinning client and bearer-token helpers.
"""

from datetime import timedelta

import pytest

from supplytrack import create_app
from supplytrack.errors import ExternalServiceError
from supplytrack.extensions import db, pinning
from supplytrack.models import User, Product, ProductionScan
from supplytrack.services.token_service import issue_token
from supplytrack.time_utils import utcnow


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test',
        'JWT_SECRET': 'test-jwt-secret',
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'PINNING_API_URL': 'https://pinning.test',
        'PINNING_GATEWAY_URL': 'https://gateway.test/ipfs',
        'PUBLIC_BASE_URL': 'https://track.test',
        'BILLING_CYCLE_DAYS': 30,
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


class FakePinning:
    """Records pinned files; filenames listed in fail_on raise like a pinning outage."""

    def __init__(self):
        self.pinned = []
        self.fail_on = set()

    def pin_file(self, content, filename, content_type="application/octet-stream"):
        if filename in self.fail_on or content == b"FAIL":
            raise ExternalServiceError("Failed to pin file")
        self.pinned.append((filename, content_type, len(content)))
        return f"Qm{len(self.pinned):044d}"


@pytest.fixture(scope='function')
def fake_pinning(monkeypatch):
    fake = FakePinning()
    monkeypatch.setattr(pinning, "pin_file", fake.pin_file)
    return fake


def make_user(db_session, email, **kwargs) -> User:
    kwargs.setdefault("subscription_tier", "free")
    kwargs.setdefault("billing_cycle_start", utcnow())
    user = User(email=email, **kwargs)
    db_session.add(user)
    db_session.commit()
    return user


def make_product(db_session, owner, product_id, **kwargs) -> Product:
    kwargs.setdefault("product_name", "Cold Brew Coffee")
    kwargs.setdefault("mode", "production")
    kwargs.setdefault("is_finalized", False)
    product = Product(user_id=owner.id, product_id=product_id, **kwargs)
    db_session.add(product)
    db_session.commit()
    return product


def add_scans(db_session, product, count, start=None) -> list:
    start = start or (utcnow() - timedelta(hours=count))
    scans = []
    for i in range(count):
        scan = ProductionScan(
            product_id=product.id,
            scanned_at=start + timedelta(minutes=i),
            location_name=f"Station {i + 1}",
            scanned_by_name="Dana",
            scanned_by_role="Roaster",
            photos=[f"https://gateway.test/ipfs/photo-{i}"],
        )
        db_session.add(scan)
        scans.append(scan)
    db_session.commit()
    return scans


@pytest.fixture(scope='function')
def business(db_session):
    """Business account on the free tier."""
    return make_user(db_session, "owner@roastery.com", name="Owner", company_name="Roastery Co")


@pytest.fixture(scope='function')
def other_business(db_session):
    return make_user(db_session, "owner@competitor.com", company_name="Competitor Inc")


@pytest.fixture(scope='function')
def batch_leader(db_session, business):
    """Batch BATCH-1 with only its leader, which has 3 checkpoints."""
    leader = make_product(
        db_session,
        business,
        "BT-1000-leader0001",
        sku="COF1000",
        batch_number="LOT-7",
        is_batch_group=True,
        batch_group_id="BATCH-1",
        batch_quantity=1,
        product_metadata={"rewardPoints": "25", "origin": "Huila"},
        created_at=utcnow() - timedelta(days=1),
    )
    add_scans(db_session, leader, 3)
    return leader


def auth_headers(user) -> dict:
    """Helper to create Authorization headers for a user."""
    return {'Authorization': f'Bearer {issue_token(user)}'}


def batch_rows(db_session, batch_group_id) -> list:
    db_session.expire_all()
    return (
        db_session.query(Product)
        .filter_by(batch_group_id=batch_group_id)
        .order_by(Product.id.asc())
        .all()
    )


def assert_batch_consistent(db_session, batch_group_id):
    """Exactly one leader, and its quantity equals the member count."""
    rows = batch_rows(db_session, batch_group_id)
    if not rows:
        return
    leaders = [r for r in rows if r.is_batch_group]
    assert len(leaders) == 1
    assert leaders[0].batch_quantity == len(rows)
