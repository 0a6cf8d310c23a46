# storefront/repos/order_repo.py
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from storefront.data.models.order import OrderModel
from storefront.data.models.payment_log import PaymentLogModel
from storefront.data.models.payment_session import PaymentSessionModel


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def create_order(self, order: OrderModel) -> OrderModel:
        # bez commita, zamowienie jest czescia transakcji checkoutu
        self.db.add(order)
        self.db.flush()
        return order

    def get_order(self, order_id: int) -> OrderModel | None:
        return self.db.get(OrderModel, order_id)

    def list_orders_by_user(self, user_id: int) -> list[OrderModel]:
        return list(
            self.db.execute(
                select(OrderModel)
                .where(OrderModel.user_id == user_id)
                .options(selectinload(OrderModel.items))
                .order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
            ).scalars()
        )

    def get_by_midtrans_order_id(self, midtrans_order_id: str) -> OrderModel | None:
        order = self.db.execute(
            select(OrderModel).where(OrderModel.midtrans_order_id == midtrans_order_id)
        ).scalar_one_or_none()
        if order:
            return order

        # starsza sesja tego samego zamowienia
        return self.db.execute(
            select(OrderModel)
            .join(PaymentSessionModel, PaymentSessionModel.order_id == OrderModel.id)
            .where(PaymentSessionModel.midtrans_order_id == midtrans_order_id)
        ).scalar_one_or_none()

    def add_payment_session(self, session: PaymentSessionModel) -> PaymentSessionModel:
        self.db.add(session)
        self.db.flush()
        return session

    def add_payment_log(self, log: PaymentLogModel) -> PaymentLogModel:
        self.db.add(log)
        self.db.flush()
        return log

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
