import logging
from datetime import date
from typing import Dict, Any, Optional

import httpx

from pricing.config.settings import settings
from pricing.config.timeouts import RATES_CONNECT_TIMEOUT, RATES_READ_TIMEOUT, is_retryable_status
from pricing.core.exceptions import ExchangeRateUnavailable
from pricing.core.retry import rates_retry, RetryableRatesError
from pricing.models.pricing import ExchangeRate
from pricing.modules.currency.rate_cache import RateCache
from pricing.utils.date_utils import try_parse_date
from pricing.utils.metrics import metrics_collector
from pricing.utils.money import safe_decimal, ZERO

logger = logging.getLogger(__name__)


class ExchangeRateClient:
    """
    Cliente de la API de tasas de cambio (tasa BCV).

    GET {base}/currencies/rates/today?from_currency=USD&to_currency=VES
    GET {base}/currencies/rates/by-date?from_currency=USD&to_currency=VES&rate_date=YYYY-MM-DD
        -> {"rate": 344.5, "rate_date": "2025-01-15", "source": "BCV"}

    Cualquier falla (HTTP, red, respuesta vacía) se reporta como
    ExchangeRateUnavailable.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        cache: Optional[RateCache] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.RATES_API_URL).rstrip('/')
        self.token = (token if token is not None else settings.RATES_API_TOKEN).strip()
        self.cache = cache if cache is not None else RateCache(settings.RATE_CACHE_TTL_MINUTES)
        self._transport = transport
        self._timeout = httpx.Timeout(RATES_READ_TIMEOUT, connect=RATES_CONNECT_TIMEOUT)

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    @rates_retry
    async def _get(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """GET con reintentos para errores transitorios (red, 429, 5xx)."""
        url = f"{self.base_url}/{path}"
        async with httpx.AsyncClient(
            timeout=self._timeout, headers=self._headers(), transport=self._transport
        ) as client:
            response = await client.get(url, params=params)
            if is_retryable_status(response.status_code):
                raise RetryableRatesError(f"HTTP {response.status_code} en {url}")
            response.raise_for_status()
            return response.json()

    async def get_rate(
        self,
        from_currency: str = "USD",
        to_currency: str = "VES",
        on_date: Optional[date] = None,
    ) -> ExchangeRate:
        """Obtiene la tasa del día (o de on_date), usando el cache si está vigente."""
        cached = self.cache.get(from_currency, to_currency, on_date)
        if cached is not None:
            metrics_collector.record_rate_lookup("api", "hit")
            return cached

        params: Dict[str, Any] = {"from_currency": from_currency.upper(), "to_currency": to_currency.upper()}
        if on_date is None:
            path = "currencies/rates/today"
        else:
            path = "currencies/rates/by-date"
            params["rate_date"] = on_date.isoformat()

        try:
            payload = await self._get(path, params)
        except (httpx.HTTPError, RetryableRatesError, ValueError) as e:
            metrics_collector.record_rate_lookup("api", "error")
            logger.warning(f"No se pudo obtener la tasa {from_currency}/{to_currency}: {e}")
            raise ExchangeRateUnavailable(
                "No hay tasa disponible",
                details={"from_currency": from_currency, "to_currency": to_currency},
                cause=e,
            )

        rate = self._parse(payload, from_currency, to_currency)
        self.cache.set(from_currency, to_currency, rate, on_date)
        metrics_collector.record_rate_lookup("api", "fetched")
        logger.info(f"Tasa {rate.from_currency}/{rate.to_currency} = {rate.rate} ({rate.rate_date}, {rate.source})")
        return rate

    @staticmethod
    def _parse(payload: Any, from_currency: str, to_currency: str) -> ExchangeRate:
        # Algunas rutas devuelven {"data": {...}}
        if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
            payload = payload["data"]
        if not isinstance(payload, dict):
            raise ExchangeRateUnavailable("No hay tasa disponible", details={"payload": str(payload)[:200]})

        value = safe_decimal(payload.get("rate"), default=ZERO)
        if not value.is_finite() or value <= ZERO:
            raise ExchangeRateUnavailable(
                "No hay tasa disponible",
                details={"from_currency": from_currency, "to_currency": to_currency},
            )
        return ExchangeRate(
            from_currency=(payload.get("from_currency") or from_currency).upper(),
            to_currency=(payload.get("to_currency") or to_currency).upper(),
            rate=value,
            rate_date=try_parse_date(payload.get("rate_date")),
            source=payload.get("source") or "",
        )
