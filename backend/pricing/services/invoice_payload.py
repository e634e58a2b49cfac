from __future__ import annotations
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pricing.config.settings import settings
from pricing.models.pricing import CartSession, InvoiceTotals, ReferenceTotals
from pricing.modules.calculator.line_items import effective_rate, is_line_exempt
from pricing.modules.calculator.totals import aggregate
from pricing.modules.taxes.aliquots import TaxAliquotResolver, get_resolver
from pricing.utils.date_utils import add_days
from pricing.utils.validators import validate_session


def _num(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


def _credit_days(session: CartSession) -> int:
    if session.credit_days is not None:
        return int(session.credit_days)
    if (session.transaction_type or "").lower() == "contado":
        return 0
    return settings.DEFAULT_CREDIT_DAYS


def _items_payload(session: CartSession, resolver: TaxAliquotResolver) -> List[Dict[str, Any]]:
    items = []
    for item in session.items:
        exempt = is_line_exempt(item, resolver)
        items.append({
            "product_id": item.product_id,
            "quantity": _num(item.quantity),
            "tax_rate": _num(effective_rate(item, resolver)),
            "is_exempt": exempt,
        })
    return items


def _totals_payload(totals: InvoiceTotals) -> Dict[str, Any]:
    return {
        "subtotal": _num(totals.subtotal),
        "taxable_base": _num(totals.taxable_base),
        "exempt_amount": _num(totals.exempt_amount),
        "tax_amount": _num(totals.tax),
        "discount_amount": _num(totals.discount),
        "total": _num(totals.total),
    }


def _reference_payload(ref: ReferenceTotals) -> Dict[str, Any]:
    return {
        "reference_currency": ref.reference_currency,
        "payment_currency": ref.target_currency,
        "subtotal_reference": _num(ref.subtotal_reference),
        "exchange_rate": _num(ref.exchange_rate),
        "rate_date": ref.rate_date.isoformat() if ref.rate_date else None,
        "subtotal_target": _num(ref.subtotal_target),
        "iva_amount": _num(ref.iva_amount),
        "igtf_percentage": _num(ref.igtf_percentage),
        "igtf_amount": _num(ref.igtf_amount),
        "igtf_exempt": ref.igtf_exempt,
        "total_amount": _num(ref.total_amount),
    }


def build_invoice_payload(
    session: CartSession,
    totals: Optional[InvoiceTotals] = None,
    reference: Optional[ReferenceTotals] = None,
    today: Optional[date] = None,
    resolver: Optional[TaxAliquotResolver] = None,
) -> Dict[str, Any]:
    """
    Arma el cuerpo que espera la API de facturas (POST /invoices).

    Raises:
        ValidationError: la sesión tiene errores; details["errors"] trae
            todos los errores por campo.
    """
    resolver = resolver or get_resolver()
    validate_session(session, resolver).raise_for_errors()

    totals = totals or aggregate(session.items, session.discount_percent, resolver=resolver)
    issue_date = session.invoice_date or today or date.today()
    credit_days = _credit_days(session)
    due_days = credit_days if credit_days > 0 else settings.DEFAULT_CREDIT_DAYS

    payload: Dict[str, Any] = {
        "customer_id": session.customer_id,
        "warehouse_id": session.warehouse_id,
        "status": session.status or "factura",
        "discount": _num(session.discount_percent),
        "date": issue_date.isoformat(),
        "due_date": add_days(issue_date, due_days).isoformat(),
        "items": _items_payload(session, resolver),
        "notes": session.notes or "",
        "payment_terms": str(credit_days),

        # Venezuela SENIAT
        "transaction_type": session.transaction_type,
        "payment_method": session.payment_method,
        "credit_days": credit_days,
        "iva_percentage": _num(resolver.general_rate),
        "customer_phone": session.customer_phone or None,
        "customer_address": session.customer_address or None,

        "totals": _totals_payload(totals),
    }
    if reference is not None:
        payload["reference_totals"] = _reference_payload(reference)
    return payload
