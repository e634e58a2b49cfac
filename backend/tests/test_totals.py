from decimal import Decimal
import itertools
import random

import pytest

from pricing.core.exceptions import InvalidDiscount, InvalidLineItem
from pricing.models.pricing import LineItem, DiscountPolicy
from pricing.modules.calculator.totals import aggregate


def _item(pid, qty, price, code="01", exempt=False):
    return LineItem(product_id=pid, quantity=qty, unit_price=price, tax_code=code, is_exempt=exempt)


def test_two_taxable_items_scenario():
    totals = aggregate([_item(1, 2, "10.00"), _item(2, 1, "25.00")], 0)

    assert totals.subtotal == Decimal("45.00")
    assert totals.taxable_base == Decimal("45.00")
    assert totals.exempt_amount == Decimal("0.00")
    assert totals.tax == Decimal("7.20")
    assert totals.discount == Decimal("0.00")
    assert totals.total == Decimal("52.20")


def test_mixed_exempt_and_taxable_scenario():
    totals = aggregate([_item(1, 3, "5.00", exempt=True), _item(2, 1, "100.00")])

    assert totals.exempt_amount == Decimal("15.00")
    assert totals.taxable_base == Decimal("100.00")
    assert totals.tax == Decimal("16.00")
    assert totals.subtotal == Decimal("115.00")
    # total = subtotal + IVA
    assert totals.total == Decimal("131.00")


def test_all_exempt_items_have_no_tax():
    totals = aggregate([_item(1, 2, 7, exempt=True), _item(2, 5, "3.30", code="EX")])

    assert totals.tax == Decimal("0")
    assert totals.exempt_amount == totals.subtotal == Decimal("30.50")
    assert totals.taxable_base == Decimal("0")


def test_empty_cart_totals_are_zero():
    totals = aggregate([])

    assert totals.subtotal == totals.tax == totals.total == Decimal("0")


def test_aggregate_is_idempotent():
    items = [_item(1, 3, "19.99", code="02"), _item(2, 1, "0.35"), _item(3, 2, "8.10", exempt=True)]

    assert aggregate(items, 5) == aggregate(items, 5)


def test_aggregate_is_order_independent():
    items = [
        _item(1, 3, "19.99", code="02"),
        _item(2, 1, "0.35"),
        _item(3, 2, "8.10", exempt=True),
        _item(4, 7, "1.13", code="03"),
    ]
    expected = aggregate(items, "12.5")

    for perm in itertools.permutations(items):
        totals = aggregate(list(perm), "12.5")
        assert abs(totals.subtotal - expected.subtotal) < Decimal("1e-6")
        assert abs(totals.tax - expected.tax) < Decimal("1e-6")
        assert abs(totals.total - expected.total) < Decimal("1e-6")


@pytest.mark.parametrize("policy", list(DiscountPolicy))
def test_total_is_monotonic_in_price_and_quantity(policy):
    rng = random.Random(20250115)
    for _ in range(50):
        items = [
            _item(i, rng.randint(1, 5), Decimal(rng.randint(0, 10000)) / 100, code=rng.choice(["01", "02", "03"]),
                  exempt=rng.random() < 0.3)
            for i in range(4)
        ]
        base = aggregate(items, 10, policy=policy)

        idx = rng.randrange(len(items))
        bumped_price = list(items)
        bumped_price[idx] = items[idx].model_copy(update={"unit_price": items[idx].unit_price + Decimal("0.01")})
        bumped_qty = list(items)
        bumped_qty[idx] = items[idx].model_copy(update={"quantity": items[idx].quantity + 1})

        assert aggregate(bumped_price, 10, policy=policy).total >= base.total
        assert aggregate(bumped_qty, 10, policy=policy).total >= base.total


def test_discount_before_tax_reduces_tax():
    totals = aggregate([_item(1, 1, 100), _item(2, 1, 50, exempt=True)], 10, policy=DiscountPolicy.BEFORE_TAX)

    assert totals.subtotal == Decimal("150.00")
    assert totals.discount == Decimal("15.00")
    assert totals.tax == Decimal("14.40")
    assert totals.total == Decimal("149.40")
    assert totals.discount_policy is DiscountPolicy.BEFORE_TAX


def test_discount_after_tax_keeps_tax():
    totals = aggregate([_item(1, 1, 100), _item(2, 1, 50, exempt=True)], 10, policy="after_tax")

    assert totals.subtotal == Decimal("150.00")
    assert totals.tax == Decimal("16.00")
    assert totals.discount == Decimal("16.60")
    assert totals.total == Decimal("149.40")
    assert totals.discount_policy is DiscountPolicy.AFTER_TAX


def test_policies_split_discount_and_tax_differently():
    items = [_item(1, 1, 100), _item(2, 1, 100, exempt=True)]

    before = aggregate(items, 20, policy=DiscountPolicy.BEFORE_TAX)
    after = aggregate(items, 20, policy=DiscountPolicy.AFTER_TAX)

    # before: 200 - 40 + 12.80 ; after: (200 + 16) * 0.8
    assert before.total == Decimal("172.80")
    assert after.total == Decimal("172.80")
    assert before.tax == Decimal("12.80")
    assert after.tax == Decimal("16.00")
    assert before.discount == Decimal("40.00")
    assert after.discount == Decimal("43.20")


def test_zero_discount_matches_under_both_policies():
    items = [_item(1, 2, "10.00"), _item(2, 1, "25.00")]

    assert aggregate(items, 0, policy="before_tax").total == aggregate(items, 0, policy="after_tax").total


@pytest.mark.parametrize("pct", [-1, "100.01", "abc"])
def test_invalid_discount_is_rejected(pct):
    with pytest.raises(InvalidDiscount) as exc:
        aggregate([_item(1, 1, 10)], pct)

    assert exc.value.field == "discount"


def test_invalid_item_is_reported_with_index():
    with pytest.raises(InvalidLineItem) as exc:
        aggregate([_item(1, 1, 10), _item(2, 0, 10)])

    assert exc.value.details["index"] == 1


@pytest.mark.parametrize("policy", list(DiscountPolicy))
def test_reported_parts_add_up_to_total(policy):
    rng = random.Random(7)
    cases = [([_item(1, 1, "10.045")], "5")]
    for _ in range(200):
        items = [
            _item(i, rng.randint(1, 3), Decimal(rng.randint(1, 100000)) / 1000,
                  code=rng.choice(["01", "02", "03"]), exempt=rng.random() < 0.2)
            for i in range(rng.randint(1, 4))
        ]
        cases.append((items, Decimal(rng.randint(0, 1000)) / 100))

    for items, pct in cases:
        t = aggregate(items, pct, policy=policy)
        assert t.subtotal == t.taxable_base + t.exempt_amount
        assert t.total == t.subtotal - t.discount + t.tax


def test_half_cent_line_with_discount_balances():
    t = aggregate([_item(1, 1, "10.045")], 5)

    assert t.subtotal == Decimal("10.05")
    assert t.discount == Decimal("0.50")
    assert t.tax == Decimal("1.53")
    assert t.total == Decimal("11.08")
