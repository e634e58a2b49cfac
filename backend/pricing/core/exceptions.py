"""
Excepciones base estandarizadas para el motor de precios.

Jerarquía:
    PricingError (base)
    ├── TaxError
    │   └── InvalidTaxCode
    ├── ValidationError
    │   ├── InvalidLineItem
    │   └── InvalidDiscount
    ├── CurrencyError
    │   ├── ExchangeRateUnavailable
    │   │   └── UnsupportedCurrency
    │   └── ReferencePriceUnavailable
    └── SessionError
        └── SessionLocked
"""
from typing import Optional, Dict, Any


class PricingError(Exception):
    """
    Base exception para todos los errores del motor de precios.

    Attributes:
        message: Mensaje descriptivo del error.
        code: Código único para identificar el tipo de error.
        details: Información adicional (campo, índice, valor).
    """
    code: str = "PRICING_ERROR"

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        self.message = message
        self.details = details or {}
        self.cause = cause
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Serializa el error a diccionario para mostrarlo junto al campo."""
        return {
            "error": self.message,
            "code": self.code,
            "details": self.details
        }


# ============ Tax Errors ============

class TaxError(PricingError):
    """Errores relacionados con alícuotas de impuesto."""
    code = "TAX_ERROR"


class InvalidTaxCode(TaxError):
    """Código o porcentaje de IVA no reconocido."""
    code = "INVALID_TAX_CODE"


# ============ Validation Errors ============

class ValidationError(PricingError):
    """Errores de validación de datos de entrada."""
    code = "VALIDATION_ERROR"

    @property
    def field(self) -> Optional[str]:
        return self.details.get("field")


class InvalidLineItem(ValidationError):
    """Línea de factura inválida (cantidad <= 0, precio negativo...)."""
    code = "INVALID_LINE_ITEM"


class InvalidDiscount(ValidationError):
    """Porcentaje de descuento fuera de [0, 100]."""
    code = "INVALID_DISCOUNT"


# ============ Currency Errors ============

class CurrencyError(PricingError):
    """Errores de conversión de moneda."""
    code = "CURRENCY_ERROR"


class ExchangeRateUnavailable(CurrencyError):
    """No hay tasa de cambio disponible para la conversión."""
    code = "EXCHANGE_RATE_UNAVAILABLE"


class UnsupportedCurrency(ExchangeRateUnavailable):
    """Moneda destino sin tasa cruzada conocida."""
    code = "UNSUPPORTED_CURRENCY"


class ReferencePriceUnavailable(CurrencyError):
    """Producto sin precio de referencia (USD) para el sistema REF."""
    code = "REFERENCE_PRICE_UNAVAILABLE"


# ============ Session Errors ============

class SessionError(PricingError):
    """Errores de la sesión de factura/carrito."""
    code = "SESSION_ERROR"


class SessionLocked(SessionError):
    """La sesión ya fue enviada y no admite cambios."""
    code = "SESSION_LOCKED"
