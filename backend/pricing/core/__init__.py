# Core module - utilities and base classes
from .exceptions import (
    PricingError, TaxError, InvalidTaxCode,
    ValidationError, InvalidLineItem, InvalidDiscount,
    CurrencyError, ExchangeRateUnavailable, UnsupportedCurrency, ReferencePriceUnavailable,
    SessionError, SessionLocked
)
from .result import success, failure, Success, Failure, Result, ErrorCodes
from .retry import rates_retry, RetryableRatesError

__all__ = [
    # Result
    'success', 'failure', 'Success', 'Failure', 'Result', 'ErrorCodes',
    # Exceptions
    'PricingError', 'TaxError', 'InvalidTaxCode',
    'ValidationError', 'InvalidLineItem', 'InvalidDiscount',
    'CurrencyError', 'ExchangeRateUnavailable', 'UnsupportedCurrency', 'ReferencePriceUnavailable',
    'SessionError', 'SessionLocked',
    # Retry
    'rates_retry', 'RetryableRatesError',
]
