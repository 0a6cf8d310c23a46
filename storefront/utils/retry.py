# storefront/utils/retry.py
import logging

import redis
import requests
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def http_retry(attempts: int = 3):
    """
    Ponawia wywolania dostawcow (wysylka, bramka platnosci).
    Tylko odrzucone polaczenia. Zaden timeout (takze ConnectTimeout, ktory jest
    podklasa ConnectionError) nie jest ponawiany: jedno wywolanie = jeden timeout.
    """
    return retry(
        reraise=True,
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=0.3, min=0.3, max=3),
        retry=(
            retry_if_exception_type(requests.ConnectionError)
            & retry_if_not_exception_type(requests.Timeout)
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
    )


def redis_retry(attempts: int = 3):
    return retry(
        reraise=True,
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_exception_type(redis.RedisError),
        before_sleep=before_sleep_log(logger, logging.WARNING),
    )
