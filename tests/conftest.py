"""Pytest configuration: in-memory SQLite, fakes for external providers."""

import os

# przed importem storefront: settings czyta env przy imporcie
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"
os.environ["MIDTRANS_SERVER_KEY"] = "test-server-key"
os.environ["WAREHOUSE_LOCATION_ID"] = "501"

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from redis.exceptions import RedisError
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import storefront.data.models  # noqa: F401
from storefront.api import create_app
from storefront.api import dependencies
from storefront.data.database import Base, get_db
from storefront.data.models import CartItemModel, CartModel, OrderModel, ProductModel, UserModel
from storefront.domain.errors import UpstreamError
from storefront.domain.schemas import ShippingRate
from storefront.services.webhook_service import compute_signature

SERVER_KEY = "test-server-key"

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeShippingClient:
    def __init__(self, rates=None):
        self.rates = rates if rates is not None else [
            ShippingRate(service_code="REG23", courier_name="JNE", service_name="REG", price=Decimal("9000"), etd="2-3 day"),
            ShippingRate(service_code="YES23", courier_name="JNE", service_name="YES", price=Decimal("18000"), etd="1 day"),
        ]
        self.error = None
        self.on_call = None
        self.calls = []

    def get_rates(self, origin_id, destination_id, weight_kg, item_value=Decimal("0"), is_cod=False):
        self.calls.append(
            {
                "origin_id": origin_id,
                "destination_id": destination_id,
                "weight_kg": weight_kg,
                "item_value": item_value,
                "is_cod": is_cod,
            }
        )
        if self.on_call:
            self.on_call()
        if self.error:
            raise self.error
        return list(self.rates)

    def search_destinations(self, keyword):
        return [{"id": 17473, "label": f"{keyword.upper()}, JAKARTA"}]


class FakeGateway:
    def __init__(self):
        self.statuses = {}
        self.created = []
        self.fail_create = False
        self.fail_status = False

    def create_transaction(self, midtrans_order_id, gross_amount, item_details=None, customer_details=None):
        if self.fail_create:
            raise UpstreamError("Payment gateway unavailable")
        self.created.append(
            {"order_id": midtrans_order_id, "gross_amount": gross_amount, "item_details": item_details}
        )
        return {
            "token": f"snap-token-{len(self.created)}",
            "redirect_url": f"https://pay.test/snap/{len(self.created)}",
        }

    def get_status(self, transaction_ref):
        if self.fail_status:
            raise UpstreamError("Payment gateway unavailable")
        if transaction_ref not in self.statuses:
            raise UpstreamError("Transaction not found")
        return dict(self.statuses[transaction_ref])


class FakeLockService:
    def __init__(self):
        self.held = {}
        self.broken = False

    def acquire_checkout_lock(self, user_id, token, ttl):
        if self.broken:
            raise RedisError("connection refused")
        if user_id in self.held:
            return False
        self.held[user_id] = token
        return True

    def release_checkout_lock(self, user_id, token):
        if self.held.get(user_id) == token:
            del self.held[user_id]
            return True
        return False


class FakeNotifier:
    def __init__(self):
        self.sent = []

    def send_order_created(self, user_id, order_id):
        self.sent.append(("order_created", user_id, order_id))

    def send_payment_received(self, user_id, order_id):
        self.sent.append(("payment_received", user_id, order_id))


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def db():
    """Swieza baza dla kazdego testu."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def shipping_client():
    return FakeShippingClient()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def lock_service():
    return FakeLockService()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(name="Checkout User", token=None, role="USER"):
        counter["n"] += 1
        user = UserModel(
            name=name,
            email=f"user{counter['n']}@example.com",
            role=role,
            token=token,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def make_product(db):
    def _make(name="Checkout Product", price="20000", weight="1", stock=5, category="Makanan"):
        product = ProductModel(
            name=name,
            price=Decimal(price),
            weight=Decimal(weight),
            stock=stock,
            category=category,
        )
        db.add(product)
        db.commit()
        return product

    return _make


@pytest.fixture
def fill_cart(db):
    def _fill(user, *lines):
        cart = db.query(CartModel).filter_by(user_id=user.id).one_or_none()
        if cart is None:
            cart = CartModel(user_id=user.id)
            db.add(cart)
            db.flush()
        for product, quantity in lines:
            db.add(CartItemModel(cart_id=cart.id, product_id=product.id, quantity=quantity))
        db.commit()
        return cart

    return _fill


@pytest.fixture
def make_order(db):
    def _make(user, midtrans_order_id="X", total="29000", payment_method="BANK_TRANSFER", **fields):
        order = OrderModel(
            user_id=user.id,
            sub_total=Decimal(total) - Decimal("9000"),
            shipping_cost=Decimal("9000"),
            total_amount=Decimal(total),
            shipping_address="Jl. Merdeka No. 10, Jakarta",
            destination_id="17473",
            courier="JNE",
            shipping_service="REG",
            payment_method=payment_method,
            midtrans_order_id=midtrans_order_id,
            **fields,
        )
        db.add(order)
        db.commit()
        return order

    return _make


@pytest.fixture
def client(db, shipping_client, gateway, lock_service, notifier):
    app = create_app()

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[dependencies.get_shipping_client] = lambda: shipping_client
    app.dependency_overrides[dependencies.get_payment_gateway] = lambda: gateway
    app.dependency_overrides[dependencies.get_lock_service] = lambda: lock_service
    app.dependency_overrides[dependencies.get_notification_service] = lambda: notifier

    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def signed_notification(order_id="X", status_code="200", gross_amount="29000.00", server_key=SERVER_KEY, **extra):
    notification = {
        "order_id": order_id,
        "status_code": status_code,
        "gross_amount": gross_amount,
        "transaction_id": f"trx-{order_id}",
        "transaction_time": "2024-01-01 12:00:00",
        **extra,
    }
    notification["signature_key"] = compute_signature(order_id, status_code, gross_amount, server_key)
    return notification


def checkout_payload(**overrides):
    payload = {
        "shipping_address": "Jl. Merdeka No. 10, Jakarta Pusat",
        "destination_id": "17473",
        "shipping_service": "REG23",
        "payment_method": "BANK_TRANSFER",
    }
    payload.update(overrides)
    return payload
