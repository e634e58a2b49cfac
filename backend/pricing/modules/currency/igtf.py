from __future__ import annotations
from dataclasses import dataclass, field
from decimal import Decimal
from typing import FrozenSet, Iterable, Optional

from pricing.config.settings import settings
from pricing.utils.money import ZERO, to_decimal, percent_of


def _normalize_method(method: Optional[str]) -> str:
    return (method or "").strip().lower()


@dataclass(frozen=True)
class IGTFPolicy:
    """
    Regla de aplicación del IGTF (Impuesto a las Grandes Transacciones
    Financieras).

    - Métodos en exempt_methods (efectivo) nunca pagan IGTF.
    - Si applicable_methods no está vacío, sólo esos métodos lo pagan.
    - Montos por debajo de min_amount no pagan IGTF.
    """
    rate: Decimal = Decimal("3")
    exempt_methods: FrozenSet[str] = field(default_factory=lambda: frozenset({"efectivo"}))
    applicable_methods: FrozenSet[str] = field(default_factory=frozenset)
    min_amount: Decimal = ZERO

    @classmethod
    def build(
        cls,
        rate,
        exempt_methods: Iterable[str] = (),
        applicable_methods: Iterable[str] = (),
        min_amount=0,
    ) -> "IGTFPolicy":
        return cls(
            rate=to_decimal(rate),
            exempt_methods=frozenset(_normalize_method(m) for m in exempt_methods),
            applicable_methods=frozenset(_normalize_method(m) for m in applicable_methods),
            min_amount=to_decimal(min_amount, default=ZERO),
        )

    @classmethod
    def from_settings(cls) -> "IGTFPolicy":
        return cls.build(
            settings.IGTF_RATE,
            settings.IGTF_EXEMPT_PAYMENT_METHODS,
            settings.IGTF_APPLICABLE_PAYMENT_METHODS,
            settings.IGTF_MIN_AMOUNT,
        )

    def is_applicable(self, payment_method: Optional[str], amount: Optional[Decimal] = None) -> bool:
        method = _normalize_method(payment_method)
        if method in self.exempt_methods:
            return False
        if self.applicable_methods and method not in self.applicable_methods:
            return False
        if amount is not None and amount < self.min_amount:
            return False
        return self.rate > ZERO

    def amount_for(self, base: Decimal, payment_method: Optional[str], exempt: bool = False) -> Decimal:
        """IGTF sin redondear sobre base; 0 si no aplica."""
        if exempt or not self.is_applicable(payment_method, base):
            return ZERO
        return percent_of(base, self.rate)
