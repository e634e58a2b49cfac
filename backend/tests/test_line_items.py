from decimal import Decimal

import pytest

from pricing.core.exceptions import InvalidLineItem, InvalidTaxCode
from pricing.models.pricing import LineItem
from pricing.modules.calculator.line_items import compute_line, effective_rate
from pricing.modules.taxes.aliquots import TaxAliquotResolver


def test_taxable_line():
    line = compute_line(LineItem(product_id=1, quantity=2, unit_price="10.00", tax_code="01"))

    assert line.net == Decimal("20.00")
    assert line.tax == Decimal("3.2")
    assert line.total == Decimal("23.2")
    assert line.rate == Decimal("16")
    assert line.is_exempt is False


def test_exempt_flag_forces_zero_tax_regardless_of_code():
    line = compute_line(LineItem(product_id=1, quantity=3, unit_price=5, tax_code="03", is_exempt=True))

    assert line.net == Decimal("15")
    assert line.tax == Decimal("0")
    assert line.total == Decimal("15")
    assert line.rate == Decimal("0")
    assert line.is_exempt is True


def test_ex_code_marks_line_exempt():
    line = compute_line(LineItem(product_id=1, quantity=1, unit_price=40, tax_code="EX"))

    assert line.is_exempt is True
    assert line.tax == Decimal("0")


def test_tax_percent_alias_from_backend_payload():
    item = LineItem.model_validate({"product_id": 7, "quantity": 1, "price": 50, "tax_rate": 8})
    line = compute_line(item)

    assert item.unit_price == Decimal("50")
    assert line.tax == Decimal("4")


def test_tax_code_wins_over_tax_percent():
    item = LineItem(product_id=1, quantity=1, unit_price=100, tax_code="03", tax_percent=8)

    assert effective_rate(item) == Decimal("31")


def test_missing_selection_uses_general_rate():
    item = LineItem(product_id=1, quantity=1, unit_price=100)

    assert effective_rate(item) == Decimal("16")


def test_float_prices_do_not_leak_binary_noise():
    line = compute_line(LineItem(product_id=1, quantity=3, unit_price=0.1, tax_code="01"))

    assert line.net == Decimal("0.3")


@pytest.mark.parametrize("quantity", [0, -1, "-2.5"])
def test_non_positive_quantity_is_rejected(quantity):
    with pytest.raises(InvalidLineItem) as exc:
        compute_line(LineItem(product_id=1, quantity=quantity, unit_price=10))

    assert exc.value.field == "quantity"


def test_negative_price_is_rejected():
    with pytest.raises(InvalidLineItem) as exc:
        compute_line(LineItem(product_id=1, quantity=1, unit_price=-1), index=3)

    assert exc.value.field == "unit_price"
    assert exc.value.details["index"] == 3


def test_fractional_quantity_requires_product_flag():
    with pytest.raises(InvalidLineItem):
        compute_line(LineItem(product_id=1, quantity="1.5", unit_price=10))

    line = compute_line(LineItem(product_id=1, quantity="1.5", unit_price=10, allows_fractional=True))
    assert line.net == Decimal("15.0")


def test_unknown_code_is_a_line_error_with_strict_resolver():
    with pytest.raises(InvalidLineItem) as exc:
        compute_line(
            LineItem(product_id=1, quantity=1, unit_price=10, tax_code="77"),
            resolver=TaxAliquotResolver(default_rate=None),
            index=2,
        )

    assert exc.value.field == "tax_code"
    assert exc.value.details["index"] == 2
    assert isinstance(exc.value.cause, InvalidTaxCode)


def test_unknown_percent_is_reported_on_its_field():
    with pytest.raises(InvalidLineItem) as exc:
        compute_line(
            LineItem(product_id=1, quantity=1, unit_price=10, tax_percent="12"),
            resolver=TaxAliquotResolver(default_rate=None),
        )

    assert exc.value.field == "tax_percent"


def test_exempt_line_skips_tax_selection_check():
    line = compute_line(
        LineItem(product_id=1, quantity=1, unit_price=10, tax_code="77", is_exempt=True),
        resolver=TaxAliquotResolver(default_rate=None),
    )

    assert line.tax == 0


def test_compute_is_idempotent():
    item = LineItem(product_id=1, quantity=4, unit_price="12.34", tax_code="02")

    assert compute_line(item) == compute_line(item)
