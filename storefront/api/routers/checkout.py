# storefront/api/routers/checkout.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.api.dependencies import (
    get_current_user,
    get_lock_service,
    get_notification_service,
    get_payment_gateway,
    get_shipping_client,
)
from storefront.data.database import get_db
from storefront.data.models.user import UserModel
from storefront.domain.schemas import CheckoutIn, CheckoutOut, OrderOut
from storefront.services.checkout_service import CheckoutService
from storefront.services.lock_service import LockService
from storefront.services.notification_service import NotificationService
from storefront.services.payment_gateway import PaymentGatewayClient
from storefront.services.payment_service import PaymentSessionService
from storefront.services.shipping_client import ShippingClient

router = APIRouter(tags=["checkout"])


@router.post("/checkout", response_model=CheckoutOut, status_code=201)
def checkout(
    payload: CheckoutIn,
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
    shipping_client: ShippingClient = Depends(get_shipping_client),
    gateway: PaymentGatewayClient = Depends(get_payment_gateway),
    lock_service: LockService = Depends(get_lock_service),
    notification_service: NotificationService = Depends(get_notification_service),
):
    """
    Checkout koszyka zalogowanego uzytkownika.
    Zamowienie jest commitowane przed wystawieniem sesji platnosci;
    blad bramki -> 500, zamowienie zostaje PENDING (retry: POST /orders/{id}/payment-session).
    """
    svc = CheckoutService(
        db=db,
        shipping_client=shipping_client,
        lock_service=lock_service,
        notification_service=notification_service,
    )
    order = svc.process_checkout(user.id, payload)
    payment = PaymentSessionService(db, gateway).issue(order)

    return CheckoutOut(order=OrderOut.model_validate(order), payment=payment)
