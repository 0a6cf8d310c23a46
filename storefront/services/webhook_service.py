# storefront/services/webhook_service.py
import hashlib
import hmac
import json
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.data.models.order import OrderModel
from storefront.data.models.payment_log import PaymentLogModel
from storefront.domain.enums import (
    FINAL_ORDER_STATUSES,
    OrderStatus,
    PaymentStatus,
    map_gateway_status,
    next_payment_status,
)
from storefront.domain.errors import (
    AuthenticationError,
    InvalidRequestError,
    NotFoundError,
    PersistenceError,
)
from storefront.repos.order_repo import OrderRepo
from storefront.services.notification_service import NotificationService
from storefront.services.payment_gateway import PaymentGatewayClient
from storefront.utils.settings import MIDTRANS_SERVER_KEY
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

# Midtrans podaje czasy w WIB bez strefy
MIDTRANS_TZ = timezone(timedelta(hours=7))
MIDTRANS_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def compute_signature(order_id: str, status_code: str, gross_amount: str, server_key: str) -> str:
    raw = f"{order_id}{status_code}{gross_amount}{server_key}"
    return hashlib.sha512(raw.encode("utf-8")).hexdigest()


def verify_signature(notification: dict, server_key: str) -> bool:
    """Podpis liczony z pol dokladnie tak jak przyszly w body, bez normalizacji."""
    signature = notification.get("signature_key")
    if not signature or not isinstance(signature, str):
        return False

    expected = compute_signature(
        notification.get("order_id", ""),
        notification.get("status_code", ""),
        notification.get("gross_amount", ""),
        server_key,
    )
    return hmac.compare_digest(signature.encode("utf-8"), expected.encode("utf-8"))


def parse_gateway_time(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.strptime(value, MIDTRANS_TIME_FORMAT).replace(tzinfo=MIDTRANS_TZ)
    except (TypeError, ValueError):
        logger.warning(f"Nieczytelny czas z bramki: {value!r}")
        return None


def extract_bank_details(status: dict) -> tuple[str | None, str | None]:
    """(bank, numer VA) dla wariantow przelewu, inaczej (None, None)."""
    payment_type = status.get("payment_type") or ""

    if payment_type == "echannel":
        # Mandiri bill payment: bill_key pelni role numeru VA
        return "mandiri", status.get("bill_key")

    if "bank_transfer" not in payment_type:
        return None, None

    va_numbers = status.get("va_numbers") or []
    if va_numbers:
        first = va_numbers[0]
        return first.get("bank"), first.get("va_number")

    if status.get("permata_va_number"):
        return "permata", status.get("permata_va_number")

    return None, None


class PaymentReconciler:
    """
    Przetwarza notyfikacje platnosci z bramki.

    Kolejnosc: body -> JSON -> podpis -> kanoniczny status z Core API ->
    zamowienie po midtrans_order_id -> update zamowienia + wpis w payment_logs
    w jednej transakcji. Kazde ponowne doreczenie dopisuje wpis do logu
    i stosuje aktualny status, status nie cofa sie (PAID -> tylko REFUNDED).
    """

    def __init__(
        self,
        db: Session,
        gateway: PaymentGatewayClient,
        server_key: str | None = None,
        notification_service: NotificationService | None = None,
    ):
        self.db = db
        self.repo = OrderRepo(db)
        self.gateway = gateway
        self.server_key = server_key if server_key is not None else MIDTRANS_SERVER_KEY
        self.notification_service = notification_service

    def reconcile(self, raw_body: bytes) -> OrderModel:
        if not raw_body:
            raise InvalidRequestError("Missing request body")

        try:
            notification = json.loads(raw_body)
        except ValueError:
            raise InvalidRequestError("Malformed notification payload")

        if not isinstance(notification, dict):
            raise InvalidRequestError("Malformed notification payload")

        if not verify_signature(notification, self.server_key):
            logger.warning(
                f"Invalid signature for order_id={notification.get('order_id')} "
                f"status_code={notification.get('status_code')}"
            )
            raise AuthenticationError("Invalid signature")

        # status z notyfikacji jest tylko sygnalem, prawda jest w Core API
        transaction_ref = notification.get("transaction_id") or notification.get("order_id")
        status = self.gateway.get_status(transaction_ref)

        # transaction_id nie jest podpisany: status musi dotyczyc podpisanego order_id
        midtrans_order_id = notification.get("order_id")
        if status.get("order_id") != midtrans_order_id:
            logger.warning(
                f"Status query order_id {status.get('order_id')} differs from signed "
                f"order_id {midtrans_order_id}"
            )
            raise AuthenticationError("Notification does not match transaction status")

        order = self.repo.get_by_midtrans_order_id(midtrans_order_id)
        if not order:
            logger.error(f"Order not found: {midtrans_order_id}")
            raise NotFoundError("Order not found")

        gateway_status = map_gateway_status(status.get("transaction_status"), status.get("fraud_status"))
        previous = PaymentStatus(order.payment_status)

        try:
            if self._is_superseded(order, midtrans_order_id, gateway_status):
                logger.warning(
                    f"Ignoring {gateway_status.value} for superseded session {midtrans_order_id} "
                    f"of order {order.id} (current: {order.midtrans_order_id})"
                )
            else:
                self._apply(order, status, gateway_status, previous)
            self.repo.add_payment_log(self._build_log(order, status, gateway_status))
            self.repo.commit()
        except SQLAlchemyError as e:
            self.repo.rollback()
            logger.exception(f"Persisting notification for order {order.id} failed")
            raise PersistenceError("Failed to persist payment notification") from e

        logger.info(
            f"Order {order.id} payment {previous.value} -> {order.payment_status} "
            f"(gateway: {status.get('transaction_status')})"
        )

        if (
            self.notification_service
            and previous is not PaymentStatus.PAID
            and order.payment_status == PaymentStatus.PAID.value
        ):
            self.notification_service.send_payment_received(order.user_id, order.id)

        return order

    def _apply(self, order: OrderModel, status: dict, gateway_status: PaymentStatus, previous: PaymentStatus):
        new_status = next_payment_status(previous, gateway_status)
        if new_status is not gateway_status:
            # np. spozniony "pending" po settlement: tylko wpis w logu
            logger.warning(
                f"Ignoring regression of order {order.id} from {previous.value} to {gateway_status.value}"
            )
            return

        order.payment_status = new_status.value
        if OrderStatus(order.status) not in FINAL_ORDER_STATUSES:
            order.status = OrderStatus(new_status.value).value

        order.payment_method = status.get("payment_type") or order.payment_method
        order.midtrans_response = json.dumps(status)

        if new_status is PaymentStatus.PAID and order.paid_at is None:
            order.paid_at = self._paid_at(status)

        bank, va_number = extract_bank_details(status)
        if va_number:
            order.payment_bank = bank
            order.payment_va_number = va_number

    @staticmethod
    def _is_superseded(order: OrderModel, midtrans_order_id: str, gateway_status: PaymentStatus) -> bool:
        # stara sesja moze jeszcze przyniesc pieniadze, ale nie pending/failed
        return (
            midtrans_order_id != order.midtrans_order_id
            and gateway_status in (PaymentStatus.PENDING, PaymentStatus.FAILED)
        )

    def _build_log(self, order: OrderModel, status: dict, gateway_status: PaymentStatus) -> PaymentLogModel:
        return PaymentLogModel(
            order_id=order.id,
            payment_method=status.get("payment_type"),
            amount=self._amount(status.get("gross_amount")),
            status=gateway_status.value,
            transaction_id=status.get("transaction_id"),
            payment_time=parse_gateway_time(status.get("transaction_time")),
            paid_at=self._paid_at(status) if gateway_status is PaymentStatus.PAID else None,
            payload=status,
        )

    @staticmethod
    def _paid_at(status: dict) -> datetime:
        return (
            parse_gateway_time(status.get("settlement_time"))
            or parse_gateway_time(status.get("transaction_time"))
            or datetime.now(timezone.utc)
        )

    @staticmethod
    def _amount(value) -> Decimal | None:
        if value is None:
            return None
        try:
            return Decimal(str(value))
        except InvalidOperation:
            return None
