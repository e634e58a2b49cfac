"""
Validadores de entrada para líneas, descuentos y sesiones de factura.

Los errores llevan el campo ofensor en details["field"] para que la UI
muestre el mensaje junto al input correspondiente.
"""

import logging
from decimal import Decimal
from typing import Optional, List, Dict, Any

from pricing.core.exceptions import InvalidLineItem, InvalidDiscount, InvalidTaxCode, ValidationError
from pricing.core.result import Result, success, failure, ErrorCodes
from pricing.models.pricing import LineItem, CartSession
from pricing.modules.taxes.aliquots import TaxAliquotResolver, get_resolver
from pricing.utils.money import to_decimal, ZERO, HUNDRED

logger = logging.getLogger(__name__)


def _line_details(field: str, value: Any, index: Optional[int], item: LineItem) -> Dict[str, Any]:
    details = {"field": field, "value": str(value), "product_id": item.product_id}
    if index is not None:
        details["index"] = index
    return details


def validate_line_item(
    item: LineItem,
    index: Optional[int] = None,
    resolver: Optional[TaxAliquotResolver] = None,
) -> LineItem:
    """
    Valida una línea antes de calcularla.

    Raises:
        InvalidLineItem: cantidad <= 0, cantidad fraccionaria en un producto
            que no la permite, precio negativo, montos no finitos o
            alícuota que el resolver no reconoce.
    """
    qty = item.quantity
    if not qty.is_finite() or qty <= ZERO:
        raise InvalidLineItem(
            "La cantidad debe ser mayor que cero",
            details=_line_details("quantity", qty, index, item),
        )
    if not item.allows_fractional and qty != qty.to_integral_value():
        raise InvalidLineItem(
            "El producto no admite cantidades fraccionarias",
            details=_line_details("quantity", qty, index, item),
        )
    price = item.unit_price
    if not price.is_finite() or price < ZERO:
        raise InvalidLineItem(
            "El precio unitario no puede ser negativo",
            details=_line_details("unit_price", price, index, item),
        )
    ref = item.price_reference
    if ref is not None and (not ref.is_finite() or ref < ZERO):
        raise InvalidLineItem(
            "El precio de referencia no puede ser negativo",
            details=_line_details("price_reference", ref, index, item),
        )
    _check_tax_selection(item, index, resolver or get_resolver())
    return item


def _check_tax_selection(item: LineItem, index: Optional[int], resolver: TaxAliquotResolver) -> None:
    # misma precedencia que effective_rate: exento, código, porcentaje
    if item.is_exempt or resolver.is_exempt_code(item.tax_code):
        return
    if item.tax_code:
        field, selection = "tax_code", item.tax_code
    elif item.tax_percent is not None:
        field, selection = "tax_percent", item.tax_percent
    else:
        return
    try:
        resolver.resolve(selection)
    except InvalidTaxCode as e:
        raise InvalidLineItem(
            f"Alícuota de IVA no reconocida: {selection}",
            details=_line_details(field, selection, index, item),
            cause=e,
        )


def validate_discount(discount_percent) -> Decimal:
    """Normaliza y valida un porcentaje de descuento en [0, 100]."""
    try:
        pct = to_decimal(discount_percent, default=ZERO)
    except ValueError:
        raise InvalidDiscount(
            "Descuento inválido",
            details={"field": "discount", "value": str(discount_percent)},
        )
    if not pct.is_finite() or pct < ZERO or pct > HUNDRED:
        raise InvalidDiscount(
            "El descuento debe estar entre 0 y 100%",
            details={"field": "discount", "value": str(pct)},
        )
    return pct


def validate_session(
    session: CartSession, resolver: Optional[TaxAliquotResolver] = None
) -> Result[CartSession]:
    """
    Valida una sesión completa antes de enviarla.

    A diferencia de validate_line_item, no se detiene en el primer error:
    devuelve Failure con todos los errores por campo en details["errors"].
    """
    errors: List[Dict[str, Any]] = []

    if not session.customer_id:
        errors.append({"field": "customer", "code": ErrorCodes.MISSING_CUSTOMER,
                       "error": "Debes seleccionar un cliente"})
    if not session.warehouse_id:
        errors.append({"field": "warehouse", "code": ErrorCodes.MISSING_WAREHOUSE,
                       "error": "Debes seleccionar un almacén"})
    if not session.items:
        errors.append({"field": "items", "code": ErrorCodes.EMPTY_CART,
                       "error": "El carrito está vacío"})

    for idx, item in enumerate(session.items):
        try:
            validate_line_item(item, index=idx, resolver=resolver)
        except ValidationError as e:
            errors.append({**e.to_dict(), "field": e.field})

    try:
        validate_discount(session.discount_percent)
    except ValidationError as e:
        errors.append({**e.to_dict(), "field": e.field})

    if errors:
        logger.info(f"Sesión inválida: {len(errors)} error(es)")
        return failure("Sesión inválida", errors)
    return success(session)
