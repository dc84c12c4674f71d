from decimal import Decimal
from types import SimpleNamespace

import pytest

from proposal_crm.services import financial_engine as fe


def _product(list_price, partner_price):
    return SimpleNamespace(list_price=Decimal(list_price), partner_price=Decimal(partner_price))


def _item(unit_price, quantity="1", *, partner="0", list_price="0", taxable=False, product=True):
    unit_price = Decimal(unit_price)
    quantity = Decimal(quantity)
    return SimpleNamespace(
        product=_product(list_price, partner) if product else None,
        unit_price=unit_price,
        quantity=quantity,
        amount=unit_price * quantity,
        apply_custom_tax=taxable,
    )


def _proposal(items=(), engineering=(), expenses=(), taxes=()):
    return SimpleNamespace(
        items=list(items),
        engineering=list(engineering),
        expenses=list(expenses),
        taxes=list(taxes),
    )


def test_to_decimal_tolerates_bad_input():
    assert fe.to_decimal(None) == Decimal("0")
    assert fe.to_decimal("abc") == Decimal("0")
    assert fe.to_decimal(0.1) == Decimal("0.1")
    assert fe.to_decimal(float("nan")) == Decimal("0")


def test_quantize_money_rounds_half_up():
    assert fe.quantize_money("2.345") == Decimal("2.35")
    assert fe.quantize_money("2.344") == Decimal("2.34")


def test_custom_tax_applies_to_partner_cost_of_taxable_items_only():
    items = [
        _item("150", partner="100", taxable=True),
        _item("250", partner="200", taxable=False),
        _item("350", partner="300", taxable=True),
    ]
    tax = SimpleNamespace(name="Eco fee", rate=Decimal("10"))
    proposal = _proposal(items=items, taxes=[tax])

    summary = fe.summarize(proposal)

    assert summary.taxable_products_amount == Decimal("400")
    assert summary.subtotal_taxes == Decimal("40")


def test_taxes_are_not_compounded():
    items = [_item("500", partner="100", taxable=True)]
    taxes = [
        SimpleNamespace(name="A", rate=Decimal("10")),
        SimpleNamespace(name="B", rate=Decimal("5")),
    ]

    breakdown = fe.tax_breakdown(taxes, fe.taxable_products_amount(items))

    assert [amount for _, amount in breakdown] == [Decimal("10"), Decimal("5")]


def test_tax_subtotal_is_sum_of_rounded_tax_rows():
    items = [_item("100.05", partner="100.05", taxable=True)]
    taxes = [
        SimpleNamespace(name="T1", rate=Decimal("5")),
        SimpleNamespace(name="T2", rate=Decimal("5")),
    ]
    proposal = _proposal(items=items, taxes=taxes)

    breakdown = fe.tax_breakdown(taxes, fe.taxable_products_amount(items))
    summary = fe.summarize(proposal)

    # 5.0025 per tax rounds to 5.00; the subtotal must not round the sum to 10.01.
    assert [amount for _, amount in breakdown] == [Decimal("5.00"), Decimal("5.00")]
    assert summary.subtotal_taxes == Decimal("10.00")
    assert summary.total_amount == Decimal("110.05")


def test_total_equals_sum_of_subtotals():
    proposal = _proposal(
        items=[_item("200", "2", partner="120", taxable=True), _item("99.99", "3", partner="50")],
        engineering=[SimpleNamespace(amount=Decimal("1300"))],
        expenses=[SimpleNamespace(amount=Decimal("75.50"))],
        taxes=[SimpleNamespace(name="T", rate=Decimal("7.5"))],
    )

    summary = fe.summarize(proposal)

    assert summary.total_amount == (
        summary.subtotal_products
        + summary.subtotal_engineering
        + summary.subtotal_expenses
        + summary.subtotal_taxes
    )
    assert summary.total_amount == fe.total_amount(proposal)
    assert summary.subtotal_products == Decimal("699.97")
    # 240 partner cost of the taxable line at 7.5%
    assert summary.subtotal_taxes == Decimal("18.0")


def test_total_cost_excludes_engineering():
    proposal = _proposal(
        items=[_item("300", partner="200", taxable=True)],
        engineering=[SimpleNamespace(amount=Decimal("1000"))],
        expenses=[SimpleNamespace(amount=Decimal("50"))],
        taxes=[SimpleNamespace(rate=Decimal("10"))],
    )

    assert fe.total_cost(proposal) == Decimal("270")
    assert fe.gross_profit(proposal) == Decimal("1370") - Decimal("270")


def test_profit_margin_is_zero_for_empty_proposal():
    proposal = _proposal()

    assert fe.total_amount(proposal) == Decimal("0")
    assert fe.profit_margin(proposal) == Decimal("0")


@pytest.mark.parametrize(
    "unit_price,partner,expected",
    [
        ("200", "100", Decimal("50")),
        ("100", "150", Decimal("-50")),
    ],
)
def test_profit_margin_matches_definition(unit_price, partner, expected):
    proposal = _proposal(items=[_item(unit_price, partner=partner)])

    assert fe.profit_margin(proposal) == expected


def test_missing_product_contributes_no_cost():
    item = _item("100", "2", product=False, taxable=True)
    proposal = _proposal(items=[item], taxes=[SimpleNamespace(rate=Decimal("10"))])

    assert fe.partner_cost([item]) == Decimal("0")
    assert fe.taxable_products_amount([item]) == Decimal("0")
    assert fe.total_amount(proposal) == Decimal("200")
    assert fe.line_item_profit(item) == Decimal("200")


def test_line_item_profit_and_margin():
    item = _item("250", "4", partner="200")

    assert fe.line_item_amount(item) == Decimal("1000")
    assert fe.line_item_profit(item) == Decimal("200")
    assert fe.line_item_margin(item) == Decimal("20")
    assert fe.extended_list_price(SimpleNamespace(product=_product("300", "0"), quantity=2)) == (
        Decimal("600")
    )


def test_line_item_margin_zero_amount():
    item = _item("0", "1", partner="10")

    assert fe.line_item_margin(item) == Decimal("0")


def test_unit_price_and_multiplier_round_trip():
    unit = fe.unit_price_from_multiplier("200", "1.5", "10")

    assert unit == Decimal("270")
    assert fe.derive_multiplier("200", "10", unit) == Decimal("1.5")


def test_derive_multiplier_guards_zero_denominators():
    assert fe.derive_multiplier("0", "10", "50") == Decimal("1")
    assert fe.derive_multiplier("100", "100", "50") == Decimal("1")


def test_break_even_discount_and_margin_percent():
    assert fe.break_even_discount("200", "150") == Decimal("25")
    assert fe.break_even_discount("0", "150") == Decimal("0")
    assert fe.margin_percent("0", "10") == Decimal("0")
    assert fe.discounted_price("100", "15") == Decimal("85")
