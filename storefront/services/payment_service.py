# storefront/services/payment_service.py
import uuid

from sqlalchemy.orm import Session

from storefront.data.models.order import OrderModel
from storefront.data.models.payment_session import PaymentSessionModel
from storefront.domain.enums import OrderStatus, PaymentMethod, PaymentStatus
from storefront.domain.errors import UpstreamError, ValidationError
from storefront.repos.order_repo import OrderRepo
from storefront.repos.user_repo import UserRepo
from storefront.services.payment_gateway import PaymentGatewayClient, to_idr
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

# sesje mozna (ponownie) wystawic tylko dla zamowien czekajacych na platnosc;
# webhook przy FAILED ustawia ten sam status na zamowieniu i na platnosci
_AWAITING_PAYMENT = {PaymentStatus.PENDING.value, PaymentStatus.FAILED.value}


class PaymentSessionService:
    """
    Wystawia sesje platnosci Snap dla juz utworzonego zamowienia.

    Dziala poza transakcja checkoutu: awaria bramki zostawia zamowienie
    jako PENDING i mozna ponowic bez ponownej walidacji stanow i wysylki.
    Dopoki platnosc jest PENDING zwracana jest juz wystawiona sesja.
    Nowa sesja powstaje dopiero po FAILED, a kazdy wystawiony order_id
    bramki zostaje w payment_sessions.
    """

    def __init__(self, db: Session, gateway: PaymentGatewayClient):
        self.db = db
        self.repo = OrderRepo(db)
        self.user_repo = UserRepo(db)
        self.gateway = gateway

    def issue(self, order: OrderModel) -> dict | None:
        if order.payment_method == PaymentMethod.COD.value:
            logger.info(f"Order {order.id} is COD, no online payment session")
            return None

        if order.status not in _AWAITING_PAYMENT or order.payment_status not in _AWAITING_PAYMENT:
            raise ValidationError(
                "Order is not awaiting payment",
                {"status": order.status, "paymentStatus": order.payment_status},
            )

        if (
            order.payment_status == PaymentStatus.PENDING.value
            and order.payment_token
            and order.payment_redirect_url
        ):
            # pierwszy link moze byc nadal oplacony, nie wystawiamy drugiego
            logger.info(f"Order {order.id} already has payment session {order.midtrans_order_id}")
            return {"token": order.payment_token, "redirect_url": order.payment_redirect_url}

        # Midtrans nie przyjmuje drugi raz tego samego order_id, kazda proba dostaje nowy
        midtrans_order_id = f"ORDER-{order.id}-{uuid.uuid4().hex[:8]}"

        try:
            session = self.gateway.create_transaction(
                midtrans_order_id,
                order.total_amount,
                item_details=self._item_details(order),
                customer_details=self._customer_details(order.user_id),
            )
        except UpstreamError as e:
            logger.error(f"Payment session for order {order.id} failed, order stays {order.status}: {e.message}")
            raise UpstreamError(
                "Failed to create payment session",
                details={"orderId": order.id},
            ) from e

        self.repo.add_payment_session(
            PaymentSessionModel(
                order_id=order.id,
                midtrans_order_id=midtrans_order_id,
                token=session["token"],
                redirect_url=session["redirect_url"],
            )
        )
        order.midtrans_order_id = midtrans_order_id
        order.payment_token = session["token"]
        order.payment_redirect_url = session["redirect_url"]

        if order.payment_status == PaymentStatus.FAILED.value:
            # nowa proba platnosci po odrzuconej/wygaslej
            order.payment_status = PaymentStatus.PENDING.value
            order.status = OrderStatus.PENDING.value

        self.repo.commit()

        logger.info(f"Payment session issued for order {order.id} as {midtrans_order_id}")

        return {"token": session["token"], "redirect_url": session["redirect_url"]}

    @staticmethod
    def _item_details(order: OrderModel) -> list[dict] | None:
        # suma item_details musi sie rownac gross_amount
        details = [
            {
                "id": str(item.product_id),
                "price": to_idr(item.price),
                "quantity": item.quantity,
                "name": f"Product {item.product_id}",
            }
            for item in order.items
        ]
        if order.shipping_cost:
            details.append(
                {
                    "id": "SHIPPING",
                    "price": to_idr(order.shipping_cost),
                    "quantity": 1,
                    "name": f"Shipping {order.courier or ''} {order.shipping_service or ''}".strip(),
                }
            )
        if sum(d["price"] * d["quantity"] for d in details) != to_idr(order.total_amount):
            # kwoty z groszami po zaokragleniu sie nie sumuja, wysylamy samo gross_amount
            return None
        return details

    def _customer_details(self, user_id: int) -> dict | None:
        user = self.user_repo.get_user(user_id)
        if not user:
            return None
        return {"first_name": user.name, "email": user.email}
