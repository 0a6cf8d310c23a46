from sqlalchemy import Column, Integer, ForeignKey, String, DateTime
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from storefront.data.database import Base


class PaymentSessionModel(Base):
    """
    Kazda wystawiona sesja Snap. Tylko insert.
    Notyfikacja dla starszego order_id bramki nadal trafia do zamowienia.
    """

    __tablename__ = "payment_sessions"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    midtrans_order_id = Column(String, nullable=False, unique=True)
    token = Column(String, nullable=False)
    redirect_url = Column(String, nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    order = relationship("OrderModel", back_populates="payment_sessions")
