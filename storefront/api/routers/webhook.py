# storefront/api/routers/webhook.py
from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from storefront.api.dependencies import get_notification_service, get_payment_gateway
from storefront.data.database import get_db
from storefront.services.notification_service import NotificationService
from storefront.services.payment_gateway import PaymentGatewayClient
from storefront.services.webhook_service import PaymentReconciler

router = APIRouter(tags=["webhook"])


@router.post("/payment-webhook", response_class=PlainTextResponse)
async def payment_webhook(
    request: Request,
    db: Session = Depends(get_db),
    gateway: PaymentGatewayClient = Depends(get_payment_gateway),
    notification_service: NotificationService = Depends(get_notification_service),
):
    """
    Notyfikacja z Midtrans. Jedyny endpoint dostajacy surowe body:
    podpis liczony jest z bajtow dokladnie tak jak przyszly, bez parsowania przez FastAPI.
    Brak naglowka auth, zaufanie tylko przez signature_key.
    """
    raw_body = await request.body()
    reconciler = PaymentReconciler(db, gateway, notification_service=notification_service)
    await run_in_threadpool(reconciler.reconcile, raw_body)
    return "OK"
