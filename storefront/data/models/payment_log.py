from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, Numeric, JSON
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from storefront.data.database import Base


class PaymentLogModel(Base):
    """Wpis audytowy per notyfikacja z bramki. Tylko insert."""

    __tablename__ = "payment_logs"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)

    payment_method = Column(String, nullable=True)
    amount = Column(Numeric(12, 2), nullable=True)
    status = Column(String(20), nullable=False)
    transaction_id = Column(String, nullable=True)
    payment_time = Column(DateTime(timezone=True), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    payload = Column(JSON, nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    order = relationship("OrderModel", back_populates="payment_logs")
