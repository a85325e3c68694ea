"""
Shared fixtures: a file-backed SQLite database per test, a fake Xendit
gateway and bearer tokens for a customer, a second customer and an admin.
"""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, select

from stivans.config import Settings
from stivans.database import create_db_and_tables
from stivans.main import create_app
from stivans.models.order import Order
from stivans.models.product import Product
from stivans.models.profile import Profile
from stivans.services.payment_gateway import InvoiceResult, XenditClient
from stivans.utils.token import create_access_token

CALLBACK_TOKEN = "cb-test-token"

CUSTOMER_ID = "user-1"
OTHER_CUSTOMER_ID = "user-2"
ADMIN_ID = "admin-1"


class FakeGateway(XenditClient):
    """Records invoice requests instead of calling Xendit."""

    def __init__(self, settings):
        super().__init__(settings)
        self.calls = []
        self.fail_with = None
        self.on_create = None

    def create_invoice(self, **kwargs):
        self.calls.append(kwargs)
        if self.on_create is not None:
            self.on_create(kwargs)
        if self.fail_with is not None:
            raise self.fail_with

        n = len(self.calls)
        return InvoiceResult(
            id=f"inv_{n}",
            invoice_url=f"https://checkout-staging.xendit.co/web/inv_{n}",
            status="PENDING",
        )


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        env="test",
        sqlalchemy_url=f"sqlite:///{tmp_path / 'stivans.db'}",
        secret_key="test-secret",
        xendit_secret_key="xnd_development_test",
        xendit_callback_token=CALLBACK_TOKEN,
        frontend_url="https://stivans.test",
        log_level="WARNING",
    )


@pytest.fixture
def gateway(settings):
    return FakeGateway(settings)


@pytest.fixture
def app(settings, gateway):
    app = create_app(settings, gateway=gateway)
    create_db_and_tables(app.state.engine)
    yield app
    app.state.engine.dispose()


@pytest.fixture
def engine(app):
    return app.state.engine


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture(autouse=True)
def seed(engine):
    with Session(engine) as session:
        session.add(Profile(id=CUSTOMER_ID, email="maria@example.com", role="customer"))
        session.add(Profile(id=OTHER_CUSTOMER_ID, email="jose@example.com", role="customer"))
        session.add(Profile(id=ADMIN_ID, email="ops@stivans.test", role="admin"))
        session.add(Product(id=1, name="Oak Casket", price=Decimal("1000.00")))
        session.add(Product(id=2, name="Flower Wreath", price=Decimal("60.00")))
        session.add(Product(id=3, name="Retired Urn", price=Decimal("300.00"), is_active=False))
        session.commit()


def _auth(settings, user_id):
    token = create_access_token({"sub": user_id}, settings)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user_headers(settings):
    return _auth(settings, CUSTOMER_ID)


@pytest.fixture
def other_user_headers(settings):
    return _auth(settings, OTHER_CUSTOMER_ID)


@pytest.fixture
def admin_headers(settings):
    return _auth(settings, ADMIN_ID)


@pytest.fixture
def checkout_payload():
    return {
        "items": [{"product_id": 1, "quantity": 1, "unit_price": "1000.00"}],
        "subtotal": "1000.00",
        "tax": "120.00",
        "shipping": "0",
        "total": "1120.00",
    }


@pytest.fixture
def place_order(client, user_headers, checkout_payload):
    def _place(headers=None, **overrides):
        payload = {**checkout_payload, **overrides}
        res = client.post("/checkout", json=payload, headers=headers or user_headers)
        assert res.status_code == 200, res.text
        return res.json()

    return _place


@pytest.fixture
def send_callback(client):
    def _send(body, token=CALLBACK_TOKEN):
        headers = {"x-callback-token": token} if token is not None else {}
        return client.post("/payments/xendit/webhook", json=body, headers=headers)

    return _send


@pytest.fixture
def paid_order(place_order, send_callback):
    placed = place_order()
    res = send_callback({
        "event": "invoice.paid",
        "data": {"external_id": placed["external_id"], "status": "PAID"},
    })
    assert res.status_code == 200
    return placed


def load_order(engine, order_id):
    with Session(engine) as session:
        return session.get(Order, order_id)


def count_rows(engine, model):
    with Session(engine) as session:
        return len(session.exec(select(model)).all())
