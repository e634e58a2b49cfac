from __future__ import annotations
from decimal import Decimal
from typing import Optional

from pricing.models.pricing import LineItem, LineTotals
from pricing.modules.taxes.aliquots import TaxAliquotResolver, get_resolver
from pricing.utils.money import ZERO, percent_of
from pricing.utils.validators import validate_line_item


def effective_rate(item: LineItem, resolver: Optional[TaxAliquotResolver] = None) -> Decimal:
    """
    Tasa de IVA efectiva de una línea.

    Exento (flag o código EX) => 0. Si no hay código ni porcentaje se usa
    la tasa general (como el POS al agregar un producto).
    """
    resolver = resolver or get_resolver()
    if item.is_exempt or resolver.is_exempt_code(item.tax_code):
        return ZERO
    if item.tax_code:
        return resolver.resolve(item.tax_code)
    if item.tax_percent is not None:
        return resolver.resolve(item.tax_percent)
    return resolver.general_rate


def is_line_exempt(item: LineItem, resolver: Optional[TaxAliquotResolver] = None) -> bool:
    resolver = resolver or get_resolver()
    return item.is_exempt or resolver.is_exempt_code(item.tax_code)


def compute_line(
    item: LineItem,
    resolver: Optional[TaxAliquotResolver] = None,
    index: Optional[int] = None,
) -> LineTotals:
    """net = cantidad * precio; tax = net * tasa / 100; total = net + tax."""
    resolver = resolver or get_resolver()
    validate_line_item(item, index=index, resolver=resolver)

    net = item.quantity * item.unit_price
    exempt = is_line_exempt(item, resolver)
    rate = ZERO if exempt else effective_rate(item, resolver)
    tax = ZERO if exempt else percent_of(net, rate)
    return LineTotals(net=net, tax=tax, total=net + tax, rate=rate, is_exempt=exempt)
