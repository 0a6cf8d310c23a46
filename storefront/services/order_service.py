# storefront/services/order_service.py
from sqlalchemy.orm import Session

from storefront.data.models.order import OrderModel
from storefront.domain.errors import AuthorizationError, NotFoundError
from storefront.repos.order_repo import OrderRepo


class OrderService:
    """
    Zapytania o zamowienia uzytkownika.
    Tworzenie zamowien jest wylacznie w CheckoutService.
    """

    def __init__(self, db: Session):
        self.repo = OrderRepo(db)

    def get_order(self, order_id: int, user_id: int) -> OrderModel:
        order = self.repo.get_order(order_id)

        if not order:
            raise NotFoundError("Order not found")

        if order.user_id != user_id:
            raise AuthorizationError("Access to this order is forbidden")

        return order

    def list_orders(self, user_id: int) -> list[OrderModel]:
        return self.repo.list_orders_by_user(user_id)
