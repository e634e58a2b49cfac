from __future__ import annotations
import logging
from decimal import Decimal
from typing import Dict, Mapping, Optional, Union

from pricing.config.settings import settings
from pricing.core.exceptions import InvalidTaxCode
from pricing.utils.money import to_decimal

logger = logging.getLogger(__name__)

EXEMPT_CODE = "EX"

TaxSelection = Union[str, int, float, Decimal, None]


def _normalize_code(code: str) -> str:
    c = code.strip().upper()
    # "1" -> "01" (los selects a veces pierden el cero)
    if c.isdigit() and len(c) == 1:
        c = "0" + c
    return c


class TaxAliquotResolver:
    """
    Traduce un código de alícuota SENIAT (01, 02, 03, 06, EX) o un porcentaje
    ya elegido en la UI (16, 8, 31, 0) a la tasa numérica.

    Si default_rate es None, cualquier selección desconocida lanza
    InvalidTaxCode. Con default_rate, se devuelve esa tasa y se deja un
    warning en el log.
    """

    def __init__(
        self,
        rates: Optional[Mapping[str, Decimal]] = None,
        default_rate: Optional[Decimal] = None,
    ):
        table = rates if rates is not None else settings.TAX_CODE_RATES
        self._rates: Dict[str, Decimal] = {
            _normalize_code(str(k)): to_decimal(v) for k, v in table.items()
        }
        self._known_percentages = {v: v for v in self._rates.values()}
        self.general_rate = self._rates.get("01", to_decimal(settings.IVA_GENERAL_RATE))
        self.default_rate = to_decimal(default_rate) if default_rate is not None else None

    @classmethod
    def from_settings(cls) -> "TaxAliquotResolver":
        return cls(settings.TAX_CODE_RATES, settings.DEFAULT_TAX_RATE)

    def known_codes(self):
        return sorted(self._rates)

    def is_exempt_code(self, selection: TaxSelection) -> bool:
        return isinstance(selection, str) and _normalize_code(selection) == EXEMPT_CODE

    def resolve(self, selection: TaxSelection) -> Decimal:
        """Devuelve la tasa (en %) para un código o porcentaje."""
        if selection is None or (isinstance(selection, str) and not selection.strip()):
            return self._fallback(selection)

        if isinstance(selection, str):
            code = _normalize_code(selection)
            if code in self._rates:
                return self._rates[code]
            try:
                pct = to_decimal(code)
            except ValueError:
                return self._fallback(selection)
        elif isinstance(selection, bool):
            return self._fallback(selection)
        else:
            pct = to_decimal(selection)

        # 16.0 y 16.00 se normalizan al valor de la tabla
        known = self._known_percentages.get(pct)
        if known is not None:
            return known
        return self._fallback(selection)

    def _fallback(self, selection: TaxSelection) -> Decimal:
        if self.default_rate is None:
            raise InvalidTaxCode(
                f"Alícuota de IVA no reconocida: {selection!r}",
                details={"field": "tax_code", "value": selection, "known_codes": self.known_codes()},
            )
        logger.warning(
            f"Alícuota {selection!r} no reconocida, usando tasa por defecto {self.default_rate}%"
        )
        return self.default_rate


_default_resolver: Optional[TaxAliquotResolver] = None


def get_resolver() -> TaxAliquotResolver:
    """Resolver compartido construido desde settings."""
    global _default_resolver
    if _default_resolver is None:
        _default_resolver = TaxAliquotResolver.from_settings()
    return _default_resolver


def resolve(tax_code: TaxSelection) -> Decimal:
    return get_resolver().resolve(tax_code)
