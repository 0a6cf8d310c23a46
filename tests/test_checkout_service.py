"""
Checkout: koszyk -> zamowienie.

Sprawdzane:
- sumy i snapshot cen w zamowieniu
- dekrementacja stanow i czyszczenie koszyka
- brak jakichkolwiek zmian przy bledzie (pusty koszyk, brak stanu, zla usluga, upstream)
- warunkowa dekrementacja przy wyscigu
"""

from decimal import Decimal

import pytest
from sqlalchemy import update

from conftest import checkout_payload
from storefront.data.models import CartItemModel, OrderItemModel, OrderModel, ProductModel
from storefront.domain.errors import UpstreamError, ValidationError
from storefront.domain.schemas import CheckoutIn
from storefront.services.checkout_service import CheckoutService


@pytest.fixture
def service(db, shipping_client, lock_service, notifier):
    return CheckoutService(
        db=db,
        shipping_client=shipping_client,
        lock_service=lock_service,
        notification_service=notifier,
        warehouse_location_id="501",
    )


def _request(**overrides):
    return CheckoutIn(**checkout_payload(**overrides))


def _order_count(db):
    return db.query(OrderModel).count()


def _cart_item_count(db):
    return db.query(CartItemModel).count()


def test_checkout_creates_order_decrements_stock_and_clears_cart(db, service, make_user, make_product, fill_cart, shipping_client):
    user = make_user()
    product = make_product(price="20000", weight="1", stock=5)
    cart = fill_cart(user, (product, 1))

    order = service.process_checkout(user.id, _request())

    assert order.sub_total == Decimal("20000")
    assert order.shipping_cost == Decimal("9000")
    assert order.total_amount == Decimal("29000")
    assert order.total_amount == order.sub_total + order.shipping_cost
    assert order.status == "PENDING"
    assert order.payment_status == "PENDING"
    assert order.courier == "JNE"
    assert order.shipping_service == "REG"
    assert order.estimated_delivery == "2-3 day"

    db.refresh(product)
    assert product.stock == 4

    assert db.query(CartItemModel).filter_by(cart_id=cart.id).count() == 0
    # wiersz koszyka zostaje
    assert db.get(type(cart), cart.id) is not None

    assert shipping_client.calls[0]["origin_id"] == "501"
    assert shipping_client.calls[0]["weight_kg"] == Decimal("1")
    assert shipping_client.calls[0]["item_value"] == Decimal("20000")
    assert shipping_client.calls[0]["is_cod"] is False


def test_order_items_capture_price_at_checkout(db, service, make_user, make_product, fill_cart):
    user = make_user()
    keyboard = make_product(name="Keyboard", price="150000", weight="0.8", stock=10)
    mouse = make_product(name="Mouse", price="50000", weight="0.2", stock=10)
    fill_cart(user, (keyboard, 2), (mouse, 3))

    order = service.process_checkout(user.id, _request())

    assert order.sub_total == Decimal("450000")
    assert order.total_amount == Decimal("459000")

    # pozniejsza zmiana ceny nie rusza zamowienia
    keyboard.price = Decimal("999999")
    db.commit()

    items = {i.product_id: i for i in db.query(OrderItemModel).filter_by(order_id=order.id)}
    assert items[keyboard.id].price == Decimal("150000")
    assert items[keyboard.id].quantity == 2
    assert items[mouse.id].price == Decimal("50000")
    assert items[mouse.id].quantity == 3


def test_total_weight_is_sent_in_kilograms(db, service, make_user, make_product, fill_cart, shipping_client):
    user = make_user()
    fill_cart(user, (make_product(weight="0.250", stock=10), 4))

    service.process_checkout(user.id, _request())

    assert shipping_client.calls[0]["weight_kg"] == Decimal("1.000")


def test_cod_flag_is_passed_to_shipping_quote(db, service, make_user, make_product, fill_cart, shipping_client):
    user = make_user()
    fill_cart(user, (make_product(), 1))

    order = service.process_checkout(user.id, _request(payment_method="COD"))

    assert shipping_client.calls[0]["is_cod"] is True
    assert order.payment_method == "COD"


def test_empty_cart_is_rejected(db, service, make_user, fill_cart):
    user = make_user()
    fill_cart(user)

    with pytest.raises(ValidationError) as exc:
        service.process_checkout(user.id, _request())

    assert exc.value.message == "Cart is empty"
    assert _order_count(db) == 0


def test_missing_cart_is_rejected_as_empty(db, service, make_user):
    user = make_user()

    with pytest.raises(ValidationError) as exc:
        service.process_checkout(user.id, _request())

    assert exc.value.message == "Cart is empty"
    assert _order_count(db) == 0


def test_insufficient_stock_leaves_everything_unchanged(db, service, make_user, make_product, fill_cart, shipping_client):
    user = make_user()
    plenty = make_product(name="Plenty", stock=10)
    scarce = make_product(name="Scarce", stock=1)
    fill_cart(user, (plenty, 2), (scarce, 3))

    with pytest.raises(ValidationError) as exc:
        service.process_checkout(user.id, _request())

    assert exc.value.message == "Insufficient stock"
    assert exc.value.status_code == 400
    assert exc.value.details == {
        "outOfStockItems": [
            {"productId": scarce.id, "productName": "Scarce", "requested": 3, "available": 1}
        ]
    }

    # walidacja przed wywolaniem dostawcy
    assert shipping_client.calls == []
    db.refresh(plenty)
    db.refresh(scarce)
    assert plenty.stock == 10
    assert scarce.stock == 1
    assert _cart_item_count(db) == 2
    assert _order_count(db) == 0


def test_unavailable_shipping_service_is_rejected_without_decrement(db, service, make_user, make_product, fill_cart):
    user = make_user()
    product = make_product(stock=5)
    fill_cart(user, (product, 2))

    with pytest.raises(ValidationError) as exc:
        service.process_checkout(user.id, _request(shipping_service="OKE"))

    assert exc.value.message == "Selected shipping service not available"
    codes = [s["service_code"] for s in exc.value.details["availableServices"]]
    assert codes == ["REG23", "YES23"]

    db.refresh(product)
    assert product.stock == 5
    assert _cart_item_count(db) == 1
    assert _order_count(db) == 0


def test_shipping_provider_failure_aborts_checkout(db, service, make_user, make_product, fill_cart, shipping_client):
    user = make_user()
    product = make_product(stock=5)
    fill_cart(user, (product, 1))
    shipping_client.error = UpstreamError("Shipping service unavailable")

    with pytest.raises(UpstreamError):
        service.process_checkout(user.id, _request())

    db.refresh(product)
    assert product.stock == 5
    assert _cart_item_count(db) == 1
    assert _order_count(db) == 0


def test_concurrent_stock_change_is_caught_by_conditional_decrement(db, service, make_user, make_product, fill_cart, shipping_client):
    user = make_user()
    first = make_product(name="First", stock=5)
    second = make_product(name="Second", stock=5)
    fill_cart(user, (first, 1), (second, 2))

    # inny checkout wykupuje drugi produkt miedzy walidacja a dekrementacja
    def sell_out():
        db.execute(update(ProductModel).where(ProductModel.id == second.id).values(stock=1))

    shipping_client.on_call = sell_out

    with pytest.raises(ValidationError) as exc:
        service.process_checkout(user.id, _request())

    assert exc.value.message == "Insufficient stock"
    shortage = exc.value.details["outOfStockItems"][0]
    assert shortage["productId"] == second.id
    assert shortage["requested"] == 2
    assert shortage["available"] == 1

    # rollback cofa tez dekrementacje pierwszego produktu
    db.refresh(first)
    assert first.stock == 5
    assert _cart_item_count(db) == 2
    assert _order_count(db) == 0


def test_checkout_already_in_progress_is_rejected(db, service, make_user, make_product, fill_cart, lock_service):
    user = make_user()
    fill_cart(user, (make_product(), 1))
    lock_service.held[user.id] = "other-tab"

    with pytest.raises(ValidationError) as exc:
        service.process_checkout(user.id, _request())

    assert exc.value.message == "Checkout already in progress"
    assert _order_count(db) == 0


def test_lock_is_released_after_success_and_failure(db, service, make_user, make_product, fill_cart, lock_service):
    user = make_user()
    fill_cart(user, (make_product(), 1))

    service.process_checkout(user.id, _request())
    assert lock_service.held == {}

    with pytest.raises(ValidationError):
        service.process_checkout(user.id, _request())
    assert lock_service.held == {}


def test_checkout_proceeds_when_redis_is_down(db, service, make_user, make_product, fill_cart, lock_service):
    user = make_user()
    fill_cart(user, (make_product(), 1))
    lock_service.broken = True

    order = service.process_checkout(user.id, _request())

    assert order.id is not None


def test_order_created_notification_is_sent(db, service, make_user, make_product, fill_cart, notifier):
    user = make_user()
    fill_cart(user, (make_product(), 1))

    order = service.process_checkout(user.id, _request())

    assert notifier.sent == [("order_created", user.id, order.id)]


def test_total_amount_is_immutable(db, service, make_user, make_product, fill_cart):
    user = make_user()
    fill_cart(user, (make_product(), 1))
    order = service.process_checkout(user.id, _request())

    with pytest.raises(ValueError):
        order.total_amount = Decimal("1")
