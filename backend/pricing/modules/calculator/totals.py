"""
Totales de factura/carrito en moneda local (modelo "legacy").

Reglas:
- Cada línea va a exento o a (base imponible, IVA) según su exención.
- subtotal = base imponible + exento (montos antes de descuento).
- Descuento por política:
    before_tax: el descuento reduce la base, por lo que reduce el IVA.
                total = subtotal - descuento + IVA
    after_tax:  el IVA se calcula sobre la base completa y el descuento
                se aplica al total con IVA.
                total = subtotal + IVA - descuento
- Las líneas se suman en Decimal exacto, así el orden no altera los
  totales. Cada monto reportado se redondea una vez y el total se arma
  con esos montos redondeados, de modo que la factura siempre cuadra.
"""
from __future__ import annotations
from decimal import Decimal
from typing import Iterable, Optional, Union

from pricing.config.settings import settings
from pricing.models.pricing import LineItem, InvoiceTotals, DiscountPolicy
from pricing.modules.calculator.line_items import compute_line
from pricing.modules.taxes.aliquots import TaxAliquotResolver, get_resolver
from pricing.utils.money import ZERO, HUNDRED, money, percent_of
from pricing.utils.validators import validate_discount


def default_policy() -> DiscountPolicy:
    return DiscountPolicy(settings.DISCOUNT_POLICY)


def aggregate(
    items: Iterable[LineItem],
    discount_percent: Union[Decimal, int, float, str] = 0,
    policy: Optional[DiscountPolicy] = None,
    resolver: Optional[TaxAliquotResolver] = None,
) -> InvoiceTotals:
    """Suma las líneas y aplica el descuento de la orden."""
    pct = validate_discount(discount_percent)
    policy = DiscountPolicy(policy) if policy is not None else default_policy()
    resolver = resolver or get_resolver()

    taxable_base = ZERO
    exempt_amount = ZERO
    raw_tax = ZERO

    for idx, item in enumerate(items):
        line = compute_line(item, resolver=resolver, index=idx)
        if line.is_exempt:
            exempt_amount += line.net
        else:
            taxable_base += line.net
            raw_tax += line.tax

    taxable_base = money(taxable_base)
    exempt_amount = money(exempt_amount)
    subtotal = taxable_base + exempt_amount

    if policy is DiscountPolicy.BEFORE_TAX:
        discount = money(percent_of(subtotal, pct))
        tax = money(raw_tax * (HUNDRED - pct) / HUNDRED)
        total = subtotal - discount + tax
    else:
        tax = money(raw_tax)
        discount = money(percent_of(subtotal + tax, pct))
        total = subtotal + tax - discount

    return InvoiceTotals(
        subtotal=subtotal,
        taxable_base=taxable_base,
        exempt_amount=exempt_amount,
        tax=tax,
        discount=discount,
        total=total,
        discount_percent=pct,
        discount_policy=policy,
    )
