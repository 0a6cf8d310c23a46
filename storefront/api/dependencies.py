# storefront/api/dependencies.py
from fastapi import Depends, Header
from sqlalchemy.orm import Session

from storefront.data.database import get_db
from storefront.data.models.user import UserModel
from storefront.domain.errors import AuthenticationError
from storefront.repos.user_repo import UserRepo
from storefront.services.lock_service import LockService
from storefront.services.notification_service import NotificationService
from storefront.services.payment_gateway import PaymentGatewayClient
from storefront.services.shipping_client import ShippingClient

# klienci zewnetrzni wstrzykiwani przez Depends, w testach dependency_overrides


def get_shipping_client() -> ShippingClient:
    return ShippingClient()


def get_payment_gateway() -> PaymentGatewayClient:
    return PaymentGatewayClient()


def get_lock_service() -> LockService:
    return LockService()


def get_notification_service() -> NotificationService:
    return NotificationService()


def get_current_user(
    authorization: str | None = Header(None),
    db: Session = Depends(get_db),
) -> UserModel:
    """Bearer token -> uzytkownik. Token wystawia i przechowuje serwis auth."""
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthenticationError("Token required")

    token = authorization[len("Bearer "):].strip()
    if not token:
        raise AuthenticationError("Token required")

    user = UserRepo(db).get_user_by_token(token)
    if not user:
        raise AuthenticationError("Invalid or revoked token")
    return user
