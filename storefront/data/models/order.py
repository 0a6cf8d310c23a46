from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, Numeric, Text
from sqlalchemy.orm import relationship, validates
from datetime import datetime, timezone

from storefront.data.database import Base
from storefront.domain.enums import OrderStatus, PaymentStatus


def _now():
    return datetime.now(timezone.utc)


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    status = Column(String(20), nullable=False, default=OrderStatus.PENDING.value)
    sub_total = Column(Numeric(12, 2), nullable=False)
    shipping_cost = Column(Numeric(12, 2), nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False)

    shipping_address = Column(String(255), nullable=False)
    destination_id = Column(String, nullable=False)
    courier = Column(String, nullable=True)
    shipping_service = Column(String, nullable=True)
    estimated_delivery = Column(String, nullable=True)
    notes = Column(String(500), nullable=True)

    payment_method = Column(String, nullable=False)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    payment_va_number = Column(String, nullable=True)
    payment_bank = Column(String, nullable=True)
    payment_token = Column(String, nullable=True)
    payment_redirect_url = Column(String, nullable=True)
    # ostatnio wystawiony; wszystkie sa w payment_sessions
    midtrans_order_id = Column(String, nullable=True, unique=True, index=True)
    midtrans_response = Column(Text, nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)

    items = relationship(
        "OrderItemModel",
        back_populates="order",
        cascade="all, delete-orphan",
    )
    payment_logs = relationship("PaymentLogModel", back_populates="order")
    payment_sessions = relationship("PaymentSessionModel", back_populates="order")

    @validates("total_amount")
    def _freeze_total(self, key, value):
        # total raz ustawiony nie moze sie zmienic
        if self.total_amount is not None and value != self.total_amount:
            raise ValueError("total_amount is immutable once set")
        return value
