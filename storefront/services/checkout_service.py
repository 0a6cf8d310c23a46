# storefront/services/checkout_service.py
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List

from redis.exceptions import RedisError
from sqlalchemy.orm import Session

from storefront.data.models.cart_item import CartItemModel
from storefront.data.models.order import OrderModel
from storefront.data.models.order_item import OrderItemModel
from storefront.domain.enums import OrderStatus, PaymentMethod, PaymentStatus
from storefront.domain.errors import ValidationError
from storefront.domain.schemas import CheckoutIn, ShippingRate
from storefront.repos.cart_repo import CartRepo
from storefront.repos.order_repo import OrderRepo
from storefront.repos.product_repo import ProductRepo
from storefront.services.lock_service import LockService
from storefront.services.notification_service import NotificationService
from storefront.services.shipping_client import ShippingClient
from storefront.utils.settings import CHECKOUT_LOCK_TTL_SECONDS, WAREHOUSE_LOCATION_ID
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class CartTotals:
    sub_total: Decimal = Decimal("0.00")
    total_weight: Decimal = Decimal("0")
    # snapshot pozycji -> OrderItemy, nie zywy stan produktu
    items_with_price: List[Dict[str, Any]] = field(default_factory=list)


def calculate_cart_totals(items: List[CartItemModel]) -> CartTotals:
    totals = CartTotals()
    for item in items:
        totals.sub_total += item.product.price * item.quantity
        totals.total_weight += item.product.weight * item.quantity
        totals.items_with_price.append(
            {
                "product_id": item.product.id,
                "quantity": item.quantity,
                "price": item.product.price,
            }
        )
    return totals


def _shortage(item: CartItemModel, available: int) -> Dict[str, Any]:
    return {
        "productId": item.product.id,
        "productName": item.product.name,
        "requested": item.quantity,
        "available": available,
    }


def validate_stock_availability(items: List[CartItemModel]) -> None:
    out_of_stock = [
        _shortage(item, item.product.stock)
        for item in items
        if item.product.stock < item.quantity
    ]
    if out_of_stock:
        raise ValidationError("Insufficient stock", {"outOfStockItems": out_of_stock})


class CheckoutService:
    """
    Checkout: koszyk -> zamowienie w jednej transakcji.

    Wszystko albo nic: dekrementacja stanow, zamowienie z pozycjami
    i czyszczenie koszyka sa commitowane razem. Kazdy wyjatek -> rollback.
    Wywolania zewnetrzne (stawki wysylki) sa przed jakakolwiek zmiana.
    """

    def __init__(
        self,
        db: Session,
        shipping_client: ShippingClient,
        lock_service: LockService | None = None,
        notification_service: NotificationService | None = None,
        warehouse_location_id: str = WAREHOUSE_LOCATION_ID,
        lock_ttl: int = CHECKOUT_LOCK_TTL_SECONDS,
    ):
        self.db = db
        self.cart_repo = CartRepo(db)
        self.product_repo = ProductRepo(db)
        self.order_repo = OrderRepo(db)
        self.shipping_client = shipping_client
        self.lock_service = lock_service
        self.notification_service = notification_service
        self.warehouse_location_id = warehouse_location_id
        self.lock_ttl = lock_ttl

    def process_checkout(self, user_id: int, request: CheckoutIn) -> OrderModel:
        lock_token = self._acquire_lock(user_id)
        try:
            order = self._checkout_in_transaction(user_id, request)
        except Exception:
            self.db.rollback()
            raise
        finally:
            self._release_lock(user_id, lock_token)

        logger.info(
            f"Order {order.id} created for user {user_id}: "
            f"sub_total={order.sub_total} shipping={order.shipping_cost} total={order.total_amount}"
        )

        if self.notification_service:
            self.notification_service.send_order_created(user_id, order.id)

        return order

    def _checkout_in_transaction(self, user_id: int, request: CheckoutIn) -> OrderModel:
        # 1. koszyk z pozycjami, produkty czytane na zywo
        cart = self.cart_repo.load_cart_for_checkout(user_id)
        if not cart or not cart.items:
            raise ValidationError("Cart is empty")

        items = sorted(cart.items, key=lambda i: i.product_id)

        # 2. sumy + snapshot cen
        totals = calculate_cart_totals(items)

        # 3. walidacja stanow, zadnych zmian przy braku
        validate_stock_availability(items)

        # 4. swieze stawki wysylki
        rates = self.shipping_client.get_rates(
            self.warehouse_location_id,
            request.destination_id,
            totals.total_weight,
            totals.sub_total,
            request.payment_method == PaymentMethod.COD,
        )

        # 5. wybrana usluga musi byc na liscie, bez podmiany
        selected = self._select_service(rates, request.shipping_service)

        # 6. warunkowa dekrementacja, chroni przed wyscigiem dwoch checkoutow
        # stala kolejnosc (po product_id) zeby blokady wierszy nie robily deadlocka
        for item in items:
            if not self.product_repo.decrement_stock(item.product_id, item.quantity):
                available = self.product_repo.get_stock(item.product_id) or 0
                logger.warning(
                    f"Stock race on product {item.product_id}: requested={item.quantity} available={available}"
                )
                raise ValidationError(
                    "Insufficient stock",
                    {"outOfStockItems": [_shortage(item, available)]},
                )

        # 7. zamowienie + pozycje
        order = OrderModel(
            user_id=user_id,
            sub_total=totals.sub_total,
            shipping_cost=selected.price,
            total_amount=totals.sub_total + selected.price,
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            shipping_address=request.shipping_address,
            destination_id=request.destination_id,
            courier=selected.courier_name,
            shipping_service=selected.service_name,
            estimated_delivery=selected.etd,
            notes=request.notes,
            payment_method=request.payment_method.value,
            items=[OrderItemModel(**snapshot) for snapshot in totals.items_with_price],
        )
        self.order_repo.create_order(order)

        # 8. pusty koszyk, wiersz koszyka zostaje
        self.cart_repo.clear_cart(cart.id)

        self.db.commit()
        return order

    @staticmethod
    def _select_service(rates: List[ShippingRate], service_code: str) -> ShippingRate:
        for rate in rates:
            if rate.service_code == service_code:
                return rate
        raise ValidationError(
            "Selected shipping service not available",
            {"availableServices": [r.model_dump(mode="json") for r in rates]},
        )

    def _acquire_lock(self, user_id: int) -> str | None:
        if not self.lock_service:
            return None

        token = uuid.uuid4().hex
        try:
            locked = self.lock_service.acquire_checkout_lock(user_id, token, self.lock_ttl)
        except RedisError as e:
            # bez redisa dalej dziala warunkowa dekrementacja
            logger.warning(f"Checkout lock unavailable for user {user_id}: {e}")
            return None

        if not locked:
            raise ValidationError("Checkout already in progress")
        return token

    def _release_lock(self, user_id: int, token: str | None):
        if not token:
            return
        try:
            self.lock_service.release_checkout_lock(user_id, token)
        except RedisError as e:
            # lock i tak wygasnie po TTL
            logger.warning(f"Failed to release checkout lock for user {user_id}: {e}")
