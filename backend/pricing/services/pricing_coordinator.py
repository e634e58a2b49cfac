"""
Coordinador de precios de una sesión de factura/carrito.

Compone dos cálculos independientes:
- legacy: totales en moneda local (siempre disponibles, síncronos).
- REF: totales USD -> VES con la tasa del día (asíncronos, opcionales).

La consulta de tasa puede llegar tarde o no llegar. Cada refresco toma un
número de solicitud creciente; sólo se aplica el resultado de la última
solicitud y sólo si la sesión no cambió mientras tanto. Si la tasa no está
disponible se vuelve a los totales legacy y se registra en el log.
"""
from __future__ import annotations
import asyncio
import itertools
import logging
import time
from datetime import date
from typing import Optional, Protocol

from pydantic import BaseModel

from pricing.config.settings import settings
from pricing.core.exceptions import PricingError, ExchangeRateUnavailable
from pricing.models.pricing import (
    CartSession, DiscountPolicy, ExchangeRate, InvoiceTotals, ReferenceTotals,
)
from pricing.modules.calculator.totals import aggregate
from pricing.modules.currency.converter import convert_items
from pricing.modules.currency.igtf import IGTFPolicy
from pricing.modules.taxes.aliquots import TaxAliquotResolver
from pricing.services.cart_session import CartSessionService
from pricing.utils.observability import observability_logger, current_session_id
from pricing.utils.metrics import metrics_collector

logger = logging.getLogger(__name__)


class RateProvider(Protocol):
    async def get_rate(
        self, from_currency: str = "USD", to_currency: str = "VES", on_date: Optional[date] = None
    ) -> ExchangeRate:
        ...


class PricingSnapshot(BaseModel):
    version: int
    legacy: InvoiceTotals
    reference: Optional[ReferenceTotals] = None

    @property
    def mode(self) -> str:
        return "reference" if self.reference is not None else "legacy"


class PricingCoordinator:

    def __init__(
        self,
        cart: CartSessionService,
        rate_provider: Optional[RateProvider] = None,
        resolver: Optional[TaxAliquotResolver] = None,
        igtf_policy: Optional[IGTFPolicy] = None,
        discount_policy: Optional[DiscountPolicy] = None,
        auto_refresh: bool = False,
    ):
        self.cart = cart
        self.rate_provider = rate_provider
        self.resolver = resolver or cart.resolver
        self.igtf_policy = igtf_policy or IGTFPolicy.from_settings()
        self.discount_policy = discount_policy
        self.auto_refresh = auto_refresh

        self._request_seq = itertools.count(1)
        self._latest_request = 0
        self._reference: Optional[ReferenceTotals] = None
        self._reference_version: Optional[int] = None
        self._pending: Optional[asyncio.Task] = None
        self.discarded = 0

        cart.subscribe(self._on_session_change)

    @property
    def session(self) -> CartSession:
        return self.cart.session

    # -----------------------
    # Legacy
    # -----------------------
    def legacy_totals(self) -> InvoiceTotals:
        s = self.session
        return aggregate(s.items, s.discount_percent, policy=self.discount_policy, resolver=self.resolver)

    # -----------------------
    # REF
    # -----------------------
    @property
    def reference_totals(self) -> Optional[ReferenceTotals]:
        if self._reference_version != self.session.version:
            return None
        return self._reference

    def _on_session_change(self, session: CartSession) -> None:
        self._reference = None
        self._reference_version = None
        if self.auto_refresh:
            try:
                self.schedule_reference_refresh()
            except RuntimeError:
                # sin event loop activo: el llamador refresca manualmente
                logger.debug("Sin event loop, refresco REF omitido")

    async def _lookup_rate(self) -> ExchangeRate:
        s = self.session
        if s.manual_exchange_rate is not None:
            return ExchangeRate(
                from_currency=settings.REFERENCE_CURRENCY,
                to_currency=settings.LOCAL_CURRENCY,
                rate=s.manual_exchange_rate,
                rate_date=date.today(),
                source="manual",
            )
        if self.rate_provider is None:
            raise ExchangeRateUnavailable("No hay proveedor de tasas configurado")
        return await self.rate_provider.get_rate(settings.REFERENCE_CURRENCY, settings.LOCAL_CURRENCY)

    def _is_stale(self, request_id: int, version: int) -> bool:
        return request_id != self._latest_request or version != self.session.version

    async def refresh_reference(self) -> Optional[ReferenceTotals]:
        """
        Recalcula los totales REF. Devuelve None si el carrito está vacío,
        si el resultado quedó obsoleto o si no hay tasa (degradado a legacy).
        """
        token = current_session_id.set(self.session.session_id)
        try:
            return await self._refresh()
        finally:
            current_session_id.reset(token)

    async def _refresh(self) -> Optional[ReferenceTotals]:
        request_id = next(self._request_seq)
        self._latest_request = request_id
        s = self.session
        version = s.version
        items = [item.model_copy() for item in s.items]
        if not items:
            return None

        started = time.perf_counter()
        try:
            rate = await self._lookup_rate()
            if self._is_stale(request_id, version):
                return self._discard(request_id)
            totals = convert_items(
                items,
                rate.rate,
                settings.LOCAL_CURRENCY,
                s.payment_method,
                rate_date=rate.rate_date,
                rate_source=rate.source,
                igtf_policy=self.igtf_policy,
                igtf_exempt=s.igtf_exempt,
                discount_percent=s.discount_percent,
                resolver=self.resolver,
            )
        except PricingError as e:
            if self._is_stale(request_id, version):
                return self._discard(request_id)
            self._reference = None
            self._reference_version = None
            metrics_collector.record_reference_refresh("fallback")
            observability_logger.log_error(
                e.code, e.message, session_version=version, fallback="legacy"
            )
            return None

        if self._is_stale(request_id, version):
            return self._discard(request_id)

        self._reference = totals
        self._reference_version = version
        elapsed = time.perf_counter() - started
        metrics_collector.record_reference_refresh("applied", elapsed)
        observability_logger.log_performance_metric(
            "reference_refresh",
            round(elapsed * 1000, 2),
            True,
            session_version=version,
        )
        return totals

    def _discard(self, request_id: int) -> None:
        self.discarded += 1
        metrics_collector.record_reference_refresh("discarded")
        logger.debug(f"Resultado REF #{request_id} descartado (obsoleto)")
        return None

    def schedule_reference_refresh(self) -> asyncio.Task:
        """
        Lanza el refresco REF sin bloquear. Cancela el refresco pendiente,
        si lo hay. Requiere un event loop en ejecución.
        """
        loop = asyncio.get_running_loop()
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = loop.create_task(self.refresh_reference())
        return self._pending

    def snapshot(self) -> PricingSnapshot:
        """Totales a mostrar: legacy siempre, REF sólo si está vigente."""
        return PricingSnapshot(
            version=self.session.version,
            legacy=self.legacy_totals(),
            reference=self.reference_totals,
        )
