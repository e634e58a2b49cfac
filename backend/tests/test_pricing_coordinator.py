import asyncio
from datetime import date
from decimal import Decimal

import pytest

from pricing.core.exceptions import ExchangeRateUnavailable
from pricing.models.pricing import CartSession, ExchangeRate
from pricing.modules.currency.igtf import IGTFPolicy
from pricing.modules.taxes.aliquots import TaxAliquotResolver
from pricing.services.cart_session import CartSessionService
from pricing.services.pricing_coordinator import PricingCoordinator
from pricing.utils.metrics import REGISTRY
from pricing.utils.observability import current_session_id


class _FakeRates:
    """Proveedor de tasas controlable desde el test."""

    def __init__(self, rate="344.50", error=None):
        self.rate = rate
        self.error = error
        self.calls = 0
        self.gates = []

    async def get_rate(self, from_currency="USD", to_currency="VES", on_date=None):
        self.calls += 1
        if self.gates:
            await self.gates.pop(0).wait()
        if self.error:
            raise self.error
        return ExchangeRate(from_currency=from_currency, to_currency=to_currency,
                            rate=self.rate, rate_date=date(2025, 1, 15), source="BCV")


def _coordinator(rates=None, payment_method="efectivo", **kwargs):
    cart = CartSessionService(CartSession(customer_id=1, warehouse_id=1, payment_method=payment_method))
    coord = PricingCoordinator(cart, rate_provider=rates, igtf_policy=IGTFPolicy.build(3, ["efectivo"]), **kwargs)
    return cart, coord


def test_legacy_totals_are_always_available():
    cart, coord = _coordinator()
    cart.add_product(1, "10.00", quantity=2, tax_code="01")
    cart.add_product(2, "25.00", tax_code="01")

    snap = coord.snapshot()

    assert snap.mode == "legacy"
    assert snap.reference is None
    assert snap.legacy.total == Decimal("52.20")


def test_reference_overlay_is_applied():
    rates = _FakeRates()
    cart, coord = _coordinator(rates, payment_method="zelle")
    cart.add_product(1, "0", price_usd="80.00")

    ref = asyncio.run(coord.refresh_reference())

    assert ref is not None
    assert ref.total_amount == Decimal("32796.40")
    assert coord.snapshot().mode == "reference"
    assert coord.snapshot().reference.rate_source == "BCV"


def test_rate_failure_degrades_to_legacy():
    rates = _FakeRates(error=ExchangeRateUnavailable("sin tasa"))
    cart, coord = _coordinator(rates)
    cart.add_product(1, "100.00", price_usd="3.00")

    assert asyncio.run(coord.refresh_reference()) is None

    snap = coord.snapshot()
    assert snap.mode == "legacy"
    assert snap.legacy.total == Decimal("116.00")


def test_missing_reference_price_degrades_to_legacy():
    cart, coord = _coordinator(_FakeRates())
    cart.add_product(1, "100.00")

    assert asyncio.run(coord.refresh_reference()) is None
    assert coord.snapshot().mode == "legacy"


def test_no_provider_without_manual_rate_degrades_to_legacy():
    cart, coord = _coordinator(None)
    cart.add_product(1, "100.00", price_usd="3.00")

    assert asyncio.run(coord.refresh_reference()) is None


def test_manual_rate_skips_lookup():
    rates = _FakeRates()
    cart, coord = _coordinator(rates)
    cart.add_product(1, "0", price_usd="10.00")
    cart.set_manual_exchange_rate("40")

    ref = asyncio.run(coord.refresh_reference())

    assert rates.calls == 0
    assert ref.exchange_rate == Decimal("40")
    assert ref.rate_source == "manual"
    assert ref.subtotal_target == Decimal("400.00")


def test_any_session_change_invalidates_overlay():
    cart, coord = _coordinator(_FakeRates())
    cart.add_product(1, "0", price_usd="10.00")
    asyncio.run(coord.refresh_reference())
    assert coord.reference_totals is not None

    cart.set_payment_method("zelle")

    assert coord.reference_totals is None
    assert coord.snapshot().mode == "legacy"


def test_result_is_discarded_when_cart_changes_during_lookup():
    rates = _FakeRates()
    cart, coord = _coordinator(rates)
    cart.add_product(1, "0", price_usd="10.00")

    async def scenario():
        gate = asyncio.Event()
        rates.gates.append(gate)
        task = asyncio.ensure_future(coord.refresh_reference())
        await asyncio.sleep(0)
        cart.add_product(2, "0", price_usd="5.00")
        gate.set()
        return await task

    assert asyncio.run(scenario()) is None
    assert coord.discarded == 1
    assert coord.reference_totals is None


def test_last_request_wins():
    rates = _FakeRates()
    cart, coord = _coordinator(rates)
    cart.add_product(1, "0", price_usd="10.00")

    async def scenario():
        slow_gate = asyncio.Event()
        rates.gates.append(slow_gate)
        slow = asyncio.ensure_future(coord.refresh_reference())
        await asyncio.sleep(0)
        fast = await coord.refresh_reference()
        slow_gate.set()
        return await slow, fast

    slow_result, fast_result = asyncio.run(scenario())

    assert slow_result is None
    assert fast_result is not None
    assert coord.reference_totals == fast_result
    assert coord.discarded == 1


def test_schedule_cancels_superseded_refresh():
    rates = _FakeRates()
    cart, coord = _coordinator(rates)
    cart.add_product(1, "0", price_usd="10.00")

    async def scenario():
        gate = asyncio.Event()
        rates.gates.append(gate)
        first = coord.schedule_reference_refresh()
        await asyncio.sleep(0)
        second = coord.schedule_reference_refresh()
        result = await second
        with pytest.raises(asyncio.CancelledError):
            await first
        return result

    ref = asyncio.run(scenario())

    assert ref is not None
    assert ref.subtotal_target == Decimal("3445.00")


def test_auto_refresh_recomputes_after_change():
    rates = _FakeRates()
    cart, coord = _coordinator(rates, auto_refresh=True)

    async def scenario():
        cart.add_product(1, "0", price_usd="10.00")
        await coord._pending
        return coord.reference_totals

    ref = asyncio.run(scenario())

    assert ref is not None
    assert ref.subtotal_reference == Decimal("10.00")


def test_auto_refresh_without_loop_only_invalidates():
    cart, coord = _coordinator(_FakeRates(), auto_refresh=True)

    cart.add_product(1, "0", price_usd="10.00")

    assert coord.reference_totals is None


def _sample(name, labels):
    return REGISTRY.get_sample_value(name, labels) or 0.0


def test_refresh_outcomes_are_counted():
    applied = _sample("pricing_reference_refresh_total", {"outcome": "applied"})
    fallback = _sample("pricing_reference_refresh_total", {"outcome": "fallback"})

    cart, coord = _coordinator(_FakeRates())
    cart.add_product(1, "0", price_usd="10.00")
    asyncio.run(coord.refresh_reference())
    coord.rate_provider = _FakeRates(error=ExchangeRateUnavailable("sin tasa"))
    asyncio.run(coord.refresh_reference())

    assert _sample("pricing_reference_refresh_total", {"outcome": "applied"}) == applied + 1
    assert _sample("pricing_reference_refresh_total", {"outcome": "fallback"}) == fallback + 1


def test_refresh_runs_under_session_context():
    seen = []

    class _Capturing(_FakeRates):
        async def get_rate(self, *args, **kwargs):
            seen.append(current_session_id.get())
            return await super().get_rate(*args, **kwargs)

    cart, coord = _coordinator(_Capturing())
    cart.add_product(1, "0", price_usd="10.00")

    asyncio.run(coord.refresh_reference())

    assert seen == [cart.session.session_id]
    assert current_session_id.get() == ""


def test_coordinator_uses_cart_resolver():
    cart = CartSessionService(CartSession(customer_id=1, warehouse_id=1),
                              resolver=TaxAliquotResolver(rates={"01": 10}))
    coord = PricingCoordinator(cart, rate_provider=_FakeRates())
    cart.add_product(1, "100.00", tax_code="01", price_usd="1.00")

    assert coord.snapshot().legacy.tax == Decimal("10.00")
