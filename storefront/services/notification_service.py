# storefront/services/notification_service.py
from storefront.celery_worker import celery_app
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """
    Serwis do wysyłania powiadomień.
    Używa Celery do asynchronicznego przetwarzania, wysylka maila jest nieprzezroczysta.
    Wolany po commicie, wiec awaria brokera nie cofa zamowienia, tylko jest logowana.
    """

    def send_order_created(self, user_id: int, order_id: int):
        self._dispatch(user_id, "order_created", {"order_id": order_id})

    def send_payment_received(self, user_id: int, order_id: int):
        self._dispatch(user_id, "payment_received", {"order_id": order_id})

    def _dispatch(self, user_id: int, template: str, context: dict):
        try:
            send_email_task.delay(user_id, template, context)
        except Exception as e:
            logger.warning(f"Nie udalo sie zakolejkowac maila {template} dla usera {user_id}: {e}")


@celery_app.task(name="storefront.services.notification_service.send_email_task")
def send_email_task(user_id: int, template: str, context: dict):
    """
    Celery task - w prawdziwym systemie wysłałby email przez dostawce (SES, SendGrid).
    Teraz tylko loguje.
    """
    logger.info(f"[EMAIL] user={user_id} template={template} context={context}")
    return {"user_id": user_id, "template": template, "status": "sent"}
