"""
Decoradores de retry con backoff exponencial usando tenacity.

Uso:
    from pricing.core.retry import rates_retry

    class ExchangeRateClient:
        @rates_retry
        async def _get(self, path: str, params: dict):
            # Esta llamada se reintentará automáticamente
            return await client.get(path, params=params)
"""
import logging

import httpx
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

from pricing.config.timeouts import (
    RATES_MAX_RETRIES,
    RATES_RETRY_MIN_WAIT,
    RATES_RETRY_MAX_WAIT,
)

logger = logging.getLogger(__name__)


class RetryableRatesError(Exception):
    """Respuesta transitoria de la API de tasas (429/5xx)."""


# ============ Rates API Retry ============

rates_retry = retry(
    stop=stop_after_attempt(RATES_MAX_RETRIES),
    wait=wait_exponential(multiplier=0.5, min=RATES_RETRY_MIN_WAIT, max=RATES_RETRY_MAX_WAIT),
    retry=retry_if_exception_type((
        TimeoutError,
        ConnectionError,
        httpx.TransportError,
        RetryableRatesError
    )),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True
)
"""
Decorador para llamadas a la API de tasas.
- 3 intentos máximo
- Backoff exponencial rápido: 0.5s → 4s
- Reintenta en: TimeoutError, ConnectionError, httpx.TransportError, 429/5xx
"""

