"""
Conversor de precios de referencia (sistema REF).

Los precios se fijan en USD y se convierten a la moneda local (VES) con la
tasa BCV del día. Sobre el subtotal convertido se aplica IVA y, según el
método de pago, IGTF.

Las tasas cruzadas se expresan como unidades de cada moneda por 1 USD:
    {"USD": 1, "VES": 344.50, "EUR": 0.92}
de modo que USD -> X = monto * (tasa_X / tasa_USD).
"""
from __future__ import annotations
import logging
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Union

from pricing.config.settings import settings
from pricing.core.exceptions import ExchangeRateUnavailable, UnsupportedCurrency, ReferencePriceUnavailable
from pricing.models.pricing import LineItem, ReferenceLineTotals, ReferenceTotals
from pricing.modules.currency.igtf import IGTFPolicy
from pricing.modules.taxes.aliquots import TaxAliquotResolver
from pricing.utils.money import ZERO, money, percent_of, to_decimal
from pricing.utils.validators import validate_discount, validate_line_item

logger = logging.getLogger(__name__)

Amount = Union[Decimal, int, float, str]


def _check_rate(exchange_rate: Optional[Amount]) -> Decimal:
    if exchange_rate is None:
        raise ExchangeRateUnavailable("No hay tasa de cambio disponible")
    try:
        rate = to_decimal(exchange_rate)
    except ValueError:
        raise ExchangeRateUnavailable(
            "Tasa de cambio inválida", details={"exchange_rate": str(exchange_rate)}
        )
    if not rate.is_finite() or rate <= ZERO:
        raise ExchangeRateUnavailable(
            "Tasa de cambio inválida", details={"exchange_rate": str(exchange_rate)}
        )
    return rate


def _rate_table(exchange_rate: Optional[Amount], cross_rates: Optional[Mapping[str, Amount]]) -> Dict[str, Decimal]:
    table: Dict[str, Decimal] = {settings.REFERENCE_CURRENCY.upper(): Decimal(1)}
    if exchange_rate is not None:
        table[settings.LOCAL_CURRENCY.upper()] = _check_rate(exchange_rate)
    for code, value in (cross_rates or {}).items():
        table[code.upper()] = _check_rate(value)
    return table


def convert_amount(
    amount: Amount,
    from_currency: str,
    to_currency: str,
    exchange_rate: Optional[Amount] = None,
    cross_rates: Optional[Mapping[str, Amount]] = None,
) -> Decimal:
    """
    Convierte un monto entre dos monedas anclando en USD. Sin redondeo.

    Raises:
        ExchangeRateUnavailable: falta la tasa local.
        UnsupportedCurrency: no hay tasa cruzada para alguna de las monedas.
    """
    value = to_decimal(amount)
    src, dst = from_currency.upper(), to_currency.upper()
    if src == dst:
        return value

    table = _rate_table(exchange_rate, cross_rates)
    for code in (src, dst):
        if code not in table:
            if code == settings.LOCAL_CURRENCY.upper():
                raise ExchangeRateUnavailable(
                    f"No hay tasa de cambio {settings.REFERENCE_CURRENCY}/{code} disponible"
                )
            raise UnsupportedCurrency(
                f"No hay tasa cruzada para {code}", details={"currency": code}
            )
    return value / table[src] * table[dst]


def convert(
    subtotal_usd: Amount,
    exchange_rate: Optional[Amount],
    target_currency: Optional[str] = None,
    payment_method: Optional[str] = None,
    *,
    rate_date: Optional[date] = None,
    rate_source: Optional[str] = "",
    cross_rates: Optional[Mapping[str, Amount]] = None,
    iva_rate: Optional[Amount] = None,
    igtf_policy: Optional[IGTFPolicy] = None,
    igtf_exempt: bool = False,
    discount_percent: Amount = 0,
    items: Optional[List[ReferenceLineTotals]] = None,
) -> ReferenceTotals:
    """
    Totales REF. Cada monto reportado se redondea antes de sumarse, así
    subtotal - descuento + IVA + IGTF coincide con total_amount:
        subtotal_target = subtotal_usd convertido a target_currency
        discount_amount = subtotal_target * descuento / 100
        iva_amount      = (subtotal_target - discount_amount) * iva_rate / 100
        igtf_amount     = (subtotal_target - discount_amount) * igtf_rate / 100 si aplica
        total_amount    = subtotal_target - discount_amount + iva_amount + igtf_amount

    La tasa local (exchange_rate) sólo hace falta si el destino es la moneda
    local; USD y terceras monedas salen de cross_rates anclado en USD.
    """
    target = (target_currency or settings.LOCAL_CURRENCY).upper()
    reference = settings.REFERENCE_CURRENCY.upper()

    if target == settings.LOCAL_CURRENCY.upper():
        rate = _check_rate(exchange_rate)
    else:
        rate = convert_amount(Decimal(1), reference, target, exchange_rate, cross_rates)

    subtotal_reference = to_decimal(subtotal_usd)
    subtotal_target = money(subtotal_reference * rate)

    pct = validate_discount(discount_percent)
    discount_amount = money(percent_of(subtotal_target, pct))
    base = subtotal_target - discount_amount

    iva_pct = to_decimal(iva_rate) if iva_rate is not None else to_decimal(settings.IVA_GENERAL_RATE)
    iva_amount = money(percent_of(base, iva_pct))

    policy = igtf_policy or IGTFPolicy.from_settings()
    igtf_amount = money(policy.amount_for(base, payment_method, exempt=igtf_exempt))

    total = base + iva_amount + igtf_amount

    logger.debug(
        f"REF: {subtotal_reference} {reference} x {rate} -> {subtotal_target} {target} "
        f"(iva={iva_amount}, igtf={igtf_amount}, metodo={payment_method})"
    )

    return ReferenceTotals(
        reference_currency=reference,
        target_currency=target,
        subtotal_reference=money(subtotal_reference),
        exchange_rate=rate,
        rate_date=rate_date,
        rate_source=rate_source or "",
        subtotal_target=subtotal_target,
        discount_amount=discount_amount,
        iva_percentage=iva_pct,
        iva_amount=iva_amount,
        igtf_percentage=policy.rate if igtf_amount > ZERO else ZERO,
        igtf_amount=igtf_amount,
        igtf_exempt=igtf_exempt or not policy.is_applicable(payment_method, base),
        total_amount=total,
        payment_method=payment_method or "",
        items=items or [],
    )


def reference_lines(
    items: Iterable[LineItem],
    exchange_rate: Optional[Amount],
    target_currency: Optional[str] = None,
    cross_rates: Optional[Mapping[str, Amount]] = None,
    resolver: Optional[TaxAliquotResolver] = None,
) -> List[ReferenceLineTotals]:
    """
    Desglose REF por línea.

    Raises:
        ReferencePriceUnavailable: alguna línea no tiene precio en USD.
    """
    target = (target_currency or settings.LOCAL_CURRENCY).upper()
    reference = settings.REFERENCE_CURRENCY.upper()
    lines: List[ReferenceLineTotals] = []
    for idx, item in enumerate(items):
        validate_line_item(item, index=idx, resolver=resolver)
        if item.price_reference is None:
            raise ReferencePriceUnavailable(
                "Producto sin precio de referencia",
                details={"product_id": item.product_id, "index": idx},
            )
        subtotal_ref = item.quantity * item.price_reference
        lines.append(ReferenceLineTotals(
            product_id=item.product_id,
            quantity=item.quantity,
            unit_price_reference=item.price_reference,
            unit_price_target=convert_amount(item.price_reference, reference, target, exchange_rate, cross_rates),
            subtotal_reference=subtotal_ref,
            subtotal_target=convert_amount(subtotal_ref, reference, target, exchange_rate, cross_rates),
        ))
    return lines


def convert_items(
    items: Iterable[LineItem],
    exchange_rate: Optional[Amount],
    target_currency: Optional[str] = None,
    payment_method: Optional[str] = None,
    **kwargs,
) -> ReferenceTotals:
    """convert() a partir de las líneas del carrito, con desglose por ítem."""
    resolver = kwargs.pop("resolver", None)
    lines = reference_lines(items, exchange_rate, target_currency, kwargs.get("cross_rates"), resolver)
    subtotal_usd = sum((ln.subtotal_reference for ln in lines), ZERO)
    return convert(subtotal_usd, exchange_rate, target_currency, payment_method, items=lines, **kwargs)
