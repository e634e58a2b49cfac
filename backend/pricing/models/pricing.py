# pricing/models/pricing.py

from __future__ import annotations
import uuid
from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from pydantic import BaseModel, Field, ConfigDict, AliasChoices, field_validator

from pricing.utils.money import to_decimal, ZERO


class DiscountPolicy(str, Enum):
    BEFORE_TAX = "before_tax"   # el descuento reduce la base imponible
    AFTER_TAX = "after_tax"     # el descuento se resta del total con IVA


# -----------------------
# Líneas de factura / carrito
# -----------------------
class LineItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: Optional[int] = None
    description: Optional[str] = ""
    quantity: Decimal = Decimal("1")
    unit_price: Decimal = Field(ZERO, validation_alias=AliasChoices("unit_price", "price"))
    # Precio REF en USD, si el producto lo tiene
    price_reference: Optional[Decimal] = Field(
        None, validation_alias=AliasChoices("price_reference", "price_usd")
    )
    tax_code: Optional[str] = None   # 01, 02, 03, 06, EX
    tax_percent: Optional[Decimal] = Field(
        None, validation_alias=AliasChoices("tax_percent", "tax_rate")
    )
    is_exempt: bool = False
    allows_fractional: bool = False

    @field_validator("quantity", "unit_price", mode="before")
    @classmethod
    def _coerce_amount(cls, v):
        return to_decimal(v)

    @field_validator("price_reference", "tax_percent", mode="before")
    @classmethod
    def _coerce_optional_amount(cls, v):
        if v is None or v == "":
            return None
        return to_decimal(v)

    @field_validator("tax_code", mode="before")
    @classmethod
    def _coerce_code(cls, v):
        if v is None:
            return None
        return str(v).strip() or None


class LineTotals(BaseModel):
    net: Decimal
    tax: Decimal
    total: Decimal
    rate: Decimal
    is_exempt: bool = False


# -----------------------
# Totales legacy (moneda local)
# -----------------------
class InvoiceTotals(BaseModel):
    subtotal: Decimal = ZERO
    taxable_base: Decimal = ZERO
    exempt_amount: Decimal = ZERO
    tax: Decimal = ZERO
    discount: Decimal = ZERO
    total: Decimal = ZERO
    discount_percent: Decimal = ZERO
    discount_policy: DiscountPolicy = DiscountPolicy.BEFORE_TAX


# -----------------------
# Sistema REF (USD -> moneda local)
# -----------------------
class ExchangeRate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_currency: str = "USD"
    to_currency: str = "VES"
    rate: Decimal
    rate_date: Optional[date] = None
    source: Optional[str] = ""

    @field_validator("rate", mode="before")
    @classmethod
    def _coerce_rate(cls, v):
        return to_decimal(v)


class ReferenceLineTotals(BaseModel):
    product_id: Optional[int] = None
    quantity: Decimal
    unit_price_reference: Decimal
    unit_price_target: Decimal
    subtotal_reference: Decimal
    subtotal_target: Decimal


class ReferenceTotals(BaseModel):
    reference_currency: str = "USD"
    target_currency: str = "VES"
    subtotal_reference: Decimal
    exchange_rate: Decimal
    rate_date: Optional[date] = None
    rate_source: Optional[str] = ""
    subtotal_target: Decimal
    discount_amount: Decimal = ZERO
    iva_percentage: Decimal
    iva_amount: Decimal
    igtf_percentage: Decimal
    igtf_amount: Decimal
    igtf_exempt: bool = False
    total_amount: Decimal
    payment_method: Optional[str] = ""
    items: List[ReferenceLineTotals] = Field(default_factory=list)


# -----------------------
# Sesión de factura / carrito (POS, factura nueva, edición)
# -----------------------
class CartSession(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    customer_id: Optional[int] = None
    warehouse_id: Optional[int] = None
    items: List[LineItem] = Field(default_factory=list)
    discount_percent: Decimal = ZERO
    status: Optional[str] = "factura"   # factura | presupuesto | pendiente | pagada
    invoice_date: Optional[date] = None

    # Venezuela SENIAT
    transaction_type: Optional[str] = "contado"   # contado | credito
    payment_method: Optional[str] = "efectivo"
    credit_days: Optional[int] = None
    igtf_exempt: bool = False  # contribuyente especial
    manual_exchange_rate: Optional[Decimal] = None
    customer_phone: Optional[str] = None
    customer_address: Optional[str] = None
    notes: Optional[str] = ""

    # Control de la sesión
    session_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    version: int = 0
    submitted: bool = False
    created_at: datetime = Field(default_factory=datetime.now)

    @field_validator("discount_percent", mode="before")
    @classmethod
    def _coerce_discount(cls, v):
        return to_decimal(v, default=ZERO)

    @field_validator("manual_exchange_rate", mode="before")
    @classmethod
    def _coerce_manual_rate(cls, v):
        if v is None or v == "":
            return None
        return to_decimal(v)
