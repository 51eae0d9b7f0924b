"""
Pytest fixtures for the rider backend tests.

Provides an in-memory database, riders with bearer tokens, seeded orders
and a fake PayRex provider.
"""

import pytest

from riderapp import create_app
from riderapp.extensions import db
from riderapp.models import Order, Payment
from riderapp.services import auth_service, order_service, token_service
from riderapp.services.payrex_client import QrphIntent


JWT_SECRET = "test-jwt-secret"


class FakePaymentProvider:
    """Stands in for PayRex; records every intent request."""

    def __init__(self):
        self.calls = []
        self.error = None

    def create_qrph_payment_intent(self, *, amount, currency, reference):
        self.calls.append({"amount": amount, "currency": currency, "reference": reference})
        if self.error is not None:
            raise self.error
        return QrphIntent(
            id=f"pi_test_{len(self.calls)}",
            reference=reference,
            qr_string=f"00020101021228QRPH{reference}",
            raw={},
        )


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'JWT_SECRET': JWT_SECRET,
        'PAYMENT_CURRENCY': 'PHP',
        'PAYREX_WEBHOOK_SECRET': None,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    """Minimum bcrypt cost keeps the suite fast; hashing is still salted."""
    monkeypatch.setattr(auth_service, "BCRYPT_ROUNDS", 4)


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Empty every table before the test."""
    db.session.rollback()
    for table in reversed(db.metadata.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    db.session.rollback()


@pytest.fixture(scope='function')
def payment_provider(app):
    provider = FakePaymentProvider()
    app.extensions["payment_provider"] = provider
    yield provider
    app.extensions.pop("payment_provider", None)


@pytest.fixture(scope='function')
def rider_a(db_session):
    return auth_service.register_rider("Rider A", "09170000001", "Password123!")


@pytest.fixture(scope='function')
def rider_b(db_session):
    return auth_service.register_rider("Rider B", "09170000002", "Password123!")


@pytest.fixture(scope='function')
def headers_a(rider_a):
    return auth_headers(token_service.issue_token(rider_a, JWT_SECRET))


@pytest.fixture(scope='function')
def headers_b(rider_b):
    return auth_headers(token_service.issue_token(rider_b, JWT_SECRET))


@pytest.fixture(scope='function')
def order_a(rider_a):
    """PENDING order for Rider A with 450.00 to collect."""
    return order_service.create_order(
        rider_a.id,
        "100234",
        "BC-100234",
        "450.00",
        customer_name="Maria Santos",
        delivery_address="12 Mabini St, Makati",
    )


@pytest.fixture(scope='function')
def arrived_qrph_order(rider_a):
    """Order at the door with QRPH chosen, ready for QR generation."""
    order = order_service.create_order(rider_a.id, "100500", "BC-100500", "1250.50", status="ARRIVED")
    return order_service.set_payment_method(order.id, rider_a.id, "QRPH")


@pytest.fixture(scope='function')
def pending_payment(arrived_qrph_order, rider_a, payment_provider):
    """QRPH payment waiting for the PayRex webhook (reference ORDER-100500)."""
    return order_service.initiate_qrph_payment(
        arrived_qrph_order.id,
        rider_a.id,
        provider=payment_provider,
        currency="PHP",
    )


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def reload_order(order_id: int) -> Order:
    db.session.expire_all()
    return db.session.get(Order, order_id)


def reload_payment(payment_id: int) -> Payment:
    db.session.expire_all()
    return db.session.get(Payment, payment_id)
