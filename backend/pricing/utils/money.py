import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from pricing.config.settings import settings

ZERO = Decimal("0")
HUNDRED = Decimal("100")

# "27,560.00" o "1,234,567": comas sólo como separador de miles
_GROUPED = re.compile(r'^[+-]?\d{1,3}(,\d{3})+(\.\d*)?$')


def to_decimal(value, default=None) -> Decimal:
    """
    Normaliza un monto a Decimal.

    Floats pasan por str() para que 10.1 no termine en 10.0999...
    Acepta separadores de miles ("27,560.00") como los muestra la UI.
    Una coma que puede ser decimal ("344,50", "344,500") se rechaza porque
    no se sabe si es separador decimal o de miles.
    """
    if value is None:
        if default is None:
            raise ValueError("monto vacío")
        return to_decimal(default)
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"monto inválido: {value!r}")
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    s = str(value).strip().replace(' ', '')
    if not s:
        if default is None:
            raise ValueError("monto vacío")
        return to_decimal(default)
    if s.count('.') > 1:
        # deja solo el último punto como decimal
        head, dot, tail = s.rpartition('.')
        s = head.replace('.', '') + '.' + tail
    if ',' in s:
        if not _GROUPED.match(s) or ('.' not in s and s.count(',') < 2):
            raise ValueError(f"monto ambiguo: {value!r}")
        s = s.replace(',', '')
    try:
        return Decimal(s)
    except InvalidOperation:
        raise ValueError(f"monto inválido: {value!r}")


def safe_decimal(value, default=ZERO) -> Decimal:
    """Como to_decimal pero nunca falla: devuelve default ante basura."""
    try:
        return to_decimal(value)
    except (ValueError, TypeError):
        return default


def money(value, places: int = None) -> Decimal:
    """Redondea a céntimos (ROUND_HALF_UP)."""
    if places is None:
        places = settings.MONEY_DECIMAL_PLACES
    quantum = Decimal(1).scaleb(-places)
    return to_decimal(value).quantize(quantum, rounding=ROUND_HALF_UP)


def percent_of(amount: Decimal, rate: Decimal) -> Decimal:
    """amount * rate / 100 sin redondear."""
    return amount * rate / HUNDRED
