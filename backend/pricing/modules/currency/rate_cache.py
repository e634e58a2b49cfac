"""
Cache en memoria de tasas de cambio.

La tasa BCV cambia una vez al día; cada cambio del carrito dispara un
recálculo REF y no hace falta consultar la API cada vez.
"""
import logging
import threading
from datetime import date, datetime, timedelta
from typing import Optional, Dict, Any, Tuple, Callable

from pricing.models.pricing import ExchangeRate

logger = logging.getLogger(__name__)

CacheKey = Tuple[str, str, Optional[date]]


class RateCache:
    """
    Cache TTL por (moneda origen, moneda destino, fecha).
    """

    def __init__(self, ttl_minutes: int = 30, clock: Callable[[], datetime] = datetime.now):
        """
        Args:
            ttl_minutes: Tiempo de vida de cada tasa en minutos
            clock: Fuente de hora actual (inyectable en tests)
        """
        self.ttl = timedelta(minutes=ttl_minutes)
        self._clock = clock
        self._entries: Dict[CacheKey, Tuple[datetime, ExchangeRate]] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def _key(from_currency: str, to_currency: str, on_date: Optional[date]) -> CacheKey:
        return from_currency.upper(), to_currency.upper(), on_date

    def get(self, from_currency: str, to_currency: str, on_date: Optional[date] = None) -> Optional[ExchangeRate]:
        key = self._key(from_currency, to_currency, on_date)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None
            stored_at, rate = entry
            if self._clock() - stored_at > self.ttl:
                del self._entries[key]
                self.misses += 1
                return None
            self.hits += 1
        logger.debug(f"Cache HIT tasa {key[0]}/{key[1]} ({on_date or 'hoy'})")
        return rate

    def set(
        self, from_currency: str, to_currency: str, rate: ExchangeRate, on_date: Optional[date] = None
    ) -> None:
        """Guarda la tasa bajo el par pedido, no el que devuelva la API."""
        key = self._key(from_currency, to_currency, on_date)
        with self._lock:
            self._entries[key] = (self._clock(), rate)

    def clear(self) -> int:
        with self._lock:
            removed = len(self._entries)
            self._entries.clear()
        logger.info(f"Cache de tasas limpiado: {removed} entradas eliminadas")
        return removed

    def get_cache_stats(self) -> Dict[str, Any]:
        """Obtiene estadísticas del cache."""
        with self._lock:
            return {
                'total_entries': len(self._entries),
                'hits': self.hits,
                'misses': self.misses,
                'ttl_minutes': int(self.ttl.total_seconds() // 60),
            }
