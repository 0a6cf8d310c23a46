# storefront/api/routers/orders.py
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.api.dependencies import get_current_user, get_payment_gateway
from storefront.data.database import get_db
from storefront.data.models.user import UserModel
from storefront.domain.errors import ValidationError
from storefront.domain.schemas import OrderOut, PaymentSessionOut
from storefront.services.order_service import OrderService
from storefront.services.payment_gateway import PaymentGatewayClient
from storefront.services.payment_service import PaymentSessionService

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get("", response_model=List[OrderOut])
def list_orders(
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return OrderService(db).list_orders(user.id)


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: int,
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Pobiera szczegóły zamówienia.
    """
    return OrderService(db).get_order(order_id, user.id)


@router.post("/{order_id}/payment-session", response_model=PaymentSessionOut)
def retry_payment_session(
    order_id: int,
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
    gateway: PaymentGatewayClient = Depends(get_payment_gateway),
):
    """
    Ponowne wystawienie sesji platnosci dla istniejacego zamowienia.
    Bez ponownej walidacji stanow i wysylki.
    """
    order = OrderService(db).get_order(order_id, user.id)
    session = PaymentSessionService(db, gateway).issue(order)
    if session is None:
        raise ValidationError("Cash on delivery orders have no online payment")
    return session
