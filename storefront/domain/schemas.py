# storefront/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel
from typing import List, Optional
from decimal import Decimal
from datetime import datetime

from storefront.domain.enums import PaymentMethod


class ItemIn(BaseModel):
    """Schema dla dodawania produktu do koszyka."""

    product_id: int = Field(..., gt=0, description="ID produktu (musi być > 0)")
    quantity: int = Field(..., gt=0, description="Ilość produktu (musi być > 0)")


class ItemQuantityIn(BaseModel):
    quantity: int = Field(..., gt=0, description="Nowa ilość produktu (musi być > 0)")


class CartItemOut(BaseModel):
    """Pozycja koszyka z aktualna cena produktu."""

    product_id: int
    name: str
    quantity: int
    price: Decimal


class CartOut(BaseModel):
    cart_id: int
    user_id: int
    items: List[CartItemOut]
    total: Decimal


class CheckoutIn(BaseModel):
    """Schema dla checkoutu koszyka. Klient wysyla camelCase (shippingAddress, ...), snake_case tez przechodzi."""

    shipping_address: str = Field(..., min_length=10, max_length=255)
    destination_id: str = Field(..., pattern=r"^\d+$", description="ID destynacji z wyszukiwarki Komerce")
    shipping_service: str = Field(..., min_length=1, description="service_code wybranej opcji wysylki")
    payment_method: PaymentMethod
    notes: Optional[str] = Field(None, max_length=500)

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ShippingRate(BaseModel):
    """Pojedyncza opcja wysylki z dostawcy stawek."""

    service_code: str
    courier_name: str
    service_name: str
    price: Decimal
    etd: Optional[str] = None


class OrderItemOut(BaseModel):
    product_id: int
    quantity: int
    price: Decimal

    model_config = ConfigDict(from_attributes=True)


class OrderOut(BaseModel):
    """Schema dla zamówienia (response)."""

    id: int
    user_id: int
    status: str
    sub_total: Decimal
    shipping_cost: Decimal
    total_amount: Decimal
    shipping_address: str
    destination_id: str
    courier: Optional[str] = None
    shipping_service: Optional[str] = None
    estimated_delivery: Optional[str] = None
    notes: Optional[str] = None
    payment_method: str
    payment_status: str
    payment_bank: Optional[str] = None
    payment_va_number: Optional[str] = None
    midtrans_order_id: Optional[str] = None
    paid_at: Optional[datetime] = None
    created_at: datetime
    items: List[OrderItemOut]

    model_config = ConfigDict(from_attributes=True)


class PaymentSessionOut(BaseModel):
    token: str
    redirect_url: str


class CheckoutOut(BaseModel):
    order: OrderOut
    payment: Optional[PaymentSessionOut] = None
