# storefront/domain/enums.py
import enum


class OrderStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"
    CHALLENGE = "CHALLENGE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"
    CHALLENGE = "CHALLENGE"


class PaymentMethod(str, enum.Enum):
    CREDIT_CARD = "CREDIT_CARD"
    PAYPAL = "PAYPAL"
    BANK_TRANSFER = "BANK_TRANSFER"
    COD = "COD"


class GatewayStatus(str, enum.Enum):
    """transaction_status ze slownika Midtrans."""

    CAPTURE = "capture"
    SETTLEMENT = "settlement"
    PENDING = "pending"
    DENY = "deny"
    CANCEL = "cancel"
    EXPIRE = "expire"
    REFUND = "refund"
    CHALLENGE = "challenge"


GATEWAY_STATUS_MAP: dict[GatewayStatus, PaymentStatus] = {
    GatewayStatus.CAPTURE: PaymentStatus.PAID,
    GatewayStatus.SETTLEMENT: PaymentStatus.PAID,
    GatewayStatus.PENDING: PaymentStatus.PENDING,
    GatewayStatus.DENY: PaymentStatus.FAILED,
    GatewayStatus.CANCEL: PaymentStatus.FAILED,
    GatewayStatus.EXPIRE: PaymentStatus.FAILED,
    GatewayStatus.REFUND: PaymentStatus.REFUNDED,
    GatewayStatus.CHALLENGE: PaymentStatus.CHALLENGE,
}

# kazdy status bramki musi miec mapowanie, sprawdzane przy imporcie
_unmapped = set(GatewayStatus) - set(GATEWAY_STATUS_MAP)
if _unmapped:
    raise RuntimeError(f"Unmapped GatewayStatus members: {sorted(s.value for s in _unmapped)}")


def map_gateway_status(raw_status: str | None, fraud_status: str | None = None) -> PaymentStatus:
    """
    Mapuje status z bramki na wewnetrzny PaymentStatus.
    Nieznany status -> PENDING, nigdy nie oznaczamy cicho jako oplacone.
    """
    try:
        gateway_status = GatewayStatus(raw_status)
    except ValueError:
        return PaymentStatus.PENDING

    # karta: capture z fraud_status=challenge czeka na decyzje merchanta
    if gateway_status is GatewayStatus.CAPTURE and fraud_status == "challenge":
        return PaymentStatus.CHALLENGE

    return GATEWAY_STATUS_MAP[gateway_status]


def next_payment_status(current: PaymentStatus, incoming: PaymentStatus) -> PaymentStatus:
    """
    Status platnosci idzie tylko do przodu.
    PAID moze przejsc jedynie w REFUNDED, REFUNDED jest koncowy.
    """
    if current is PaymentStatus.REFUNDED:
        return current
    if current is PaymentStatus.PAID and incoming is not PaymentStatus.REFUNDED:
        return current
    return incoming


# statusy zamowienia ustawiane poza platnoscia, webhook ich nie nadpisuje
FINAL_ORDER_STATUSES = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED})
