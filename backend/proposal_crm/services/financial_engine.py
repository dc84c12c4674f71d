"""Proposal financial figures.

Every total, subtotal, cost and margin shown for a proposal is derived here.
Functions are pure: they read attributes off ORM instances (or any object
with the same attribute names) and never touch the session.

Amounts are computed as ``Decimal`` at full precision; use
``quantize_money`` when a value is cached on a row. Tax amounts are the
exception: each tax is rounded to cents before summing, so the stored tax
rows always add up to the tax subtotal and the total.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, List, Tuple

ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")


@dataclass(frozen=True)
class FinancialSummary:
    subtotal_products: Decimal
    subtotal_engineering: Decimal
    subtotal_expenses: Decimal
    taxable_products_amount: Decimal
    subtotal_taxes: Decimal
    total_amount: Decimal
    partner_cost: Decimal
    total_cost: Decimal
    gross_profit: Decimal
    profit_margin: Decimal


def to_decimal(value: Any) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value if value.is_finite() else ZERO
    if isinstance(value, bool):
        return ONE if value else ZERO
    if isinstance(value, float):
        # repr() keeps 0.1 as "0.1" instead of its binary expansion.
        value = repr(value)
    try:
        d = Decimal(str(value).strip() or "0")
    except (InvalidOperation, ValueError):
        return ZERO
    return d if d.is_finite() else ZERO


def quantize_money(value: Any) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def _sum(values: Iterable[Any]) -> Decimal:
    total = ZERO
    for v in values:
        total += to_decimal(v)
    return total


# ---------------------------------------------------------------------------
# Pricing helpers
# ---------------------------------------------------------------------------


def discounted_price(list_price: Any, discount: Any) -> Decimal:
    """List price after a percentage discount: ``list * (1 - discount/100)``."""
    return to_decimal(list_price) * (ONE - to_decimal(discount) / HUNDRED)


def unit_price_from_multiplier(list_price: Any, multiplier: Any, discount: Any) -> Decimal:
    return to_decimal(list_price) * to_decimal(multiplier) * (ONE - to_decimal(discount) / HUNDRED)


def derive_multiplier(list_price: Any, discount: Any, unit_price: Any) -> Decimal:
    """Back-compute the multiplier that produced ``unit_price``.

    Falls back to 1 when the list price is not positive or the discount
    factor collapses to zero.
    """
    lp = to_decimal(list_price)
    factor = ONE - to_decimal(discount) / HUNDRED
    if lp <= ZERO or factor <= ZERO:
        return ONE
    return to_decimal(unit_price) / (lp * factor)


def break_even_discount(list_price: Any, partner_price: Any) -> Decimal:
    """Discount at which the customer price equals the partner price."""
    lp = to_decimal(list_price)
    if lp == ZERO:
        return ZERO
    return (lp - to_decimal(partner_price)) / lp * HUNDRED


def margin_percent(revenue: Any, cost: Any) -> Decimal:
    rev = to_decimal(revenue)
    if rev == ZERO:
        return ZERO
    return (rev - to_decimal(cost)) / rev * HUNDRED


def tax_amount(base: Any, rate: Any) -> Decimal:
    return to_decimal(base) * to_decimal(rate) / HUNDRED


# ---------------------------------------------------------------------------
# Line items
# ---------------------------------------------------------------------------


def partner_price_of(item: Any) -> Decimal:
    product = getattr(item, "product", None)
    if product is None:
        return ZERO
    return to_decimal(getattr(product, "partner_price", None))


def list_price_of(item: Any) -> Decimal:
    product = getattr(item, "product", None)
    if product is None:
        return ZERO
    return to_decimal(getattr(product, "list_price", None))


def line_item_amount(item: Any) -> Decimal:
    unit_price = to_decimal(getattr(item, "unit_price", None))
    return unit_price * to_decimal(getattr(item, "quantity", None))


def extended_partner_price(item: Any) -> Decimal:
    return partner_price_of(item) * to_decimal(getattr(item, "quantity", None))


def extended_list_price(item: Any) -> Decimal:
    return list_price_of(item) * to_decimal(getattr(item, "quantity", None))


def line_item_profit(item: Any) -> Decimal:
    return to_decimal(getattr(item, "amount", None)) - extended_partner_price(item)


def line_item_margin(item: Any) -> Decimal:
    amount = to_decimal(getattr(item, "amount", None))
    if amount <= ZERO:
        return ZERO
    return line_item_profit(item) / amount * HUNDRED


def engineering_amount(entry: Any) -> Decimal:
    return to_decimal(getattr(entry, "days", None)) * to_decimal(getattr(entry, "rate", None))


# ---------------------------------------------------------------------------
# Subtotals
# ---------------------------------------------------------------------------


def subtotal_products(items: Iterable[Any]) -> Decimal:
    return _sum(getattr(i, "amount", None) for i in items)


def subtotal_engineering(entries: Iterable[Any]) -> Decimal:
    return _sum(getattr(e, "amount", None) for e in entries)


def subtotal_expenses(expenses: Iterable[Any]) -> Decimal:
    return _sum(getattr(e, "amount", None) for e in expenses)


def taxable_products_amount(items: Iterable[Any]) -> Decimal:
    """Tax base: partner cost of the items flagged ``apply_custom_tax``."""
    return _sum(extended_partner_price(i) for i in items if getattr(i, "apply_custom_tax", False))


def tax_breakdown(taxes: Iterable[Any], taxable_base: Any) -> List[Tuple[Any, Decimal]]:
    """Per-tax amounts in cents; the tax subtotal is their sum.

    Each tax applies to the same base; taxes are never compounded.
    """
    return [
        (t, quantize_money(tax_amount(taxable_base, getattr(t, "rate", None)))) for t in taxes
    ]


def subtotal_taxes(taxes: Iterable[Any], taxable_base: Any) -> Decimal:
    return _sum(amount for _, amount in tax_breakdown(taxes, taxable_base))


def partner_cost(items: Iterable[Any]) -> Decimal:
    return _sum(extended_partner_price(i) for i in items)


# ---------------------------------------------------------------------------
# Proposal level
# ---------------------------------------------------------------------------


def _collection(proposal: Any, name: str) -> list:
    return list(getattr(proposal, name, None) or [])


def proposal_subtotal_taxes(proposal: Any) -> Decimal:
    items = _collection(proposal, "items")
    return subtotal_taxes(_collection(proposal, "taxes"), taxable_products_amount(items))


def total_amount(proposal: Any) -> Decimal:
    return (
        subtotal_products(_collection(proposal, "items"))
        + subtotal_engineering(_collection(proposal, "engineering"))
        + subtotal_expenses(_collection(proposal, "expenses"))
        + proposal_subtotal_taxes(proposal)
    )


def total_cost(proposal: Any) -> Decimal:
    # Engineering carries no cost; custom taxes are cost, not revenue.
    return (
        partner_cost(_collection(proposal, "items"))
        + subtotal_expenses(_collection(proposal, "expenses"))
        + proposal_subtotal_taxes(proposal)
    )


def gross_profit(proposal: Any) -> Decimal:
    return total_amount(proposal) - total_cost(proposal)


def profit_margin(proposal: Any) -> Decimal:
    return margin_percent(total_amount(proposal), total_cost(proposal))


def summarize(proposal: Any) -> FinancialSummary:
    items = _collection(proposal, "items")
    engineering = _collection(proposal, "engineering")
    expenses = _collection(proposal, "expenses")
    taxes = _collection(proposal, "taxes")

    products = subtotal_products(items)
    eng = subtotal_engineering(engineering)
    exp = subtotal_expenses(expenses)
    taxable = taxable_products_amount(items)
    tax = subtotal_taxes(taxes, taxable)
    total = products + eng + exp + tax
    p_cost = partner_cost(items)
    cost = p_cost + exp + tax

    return FinancialSummary(
        subtotal_products=products,
        subtotal_engineering=eng,
        subtotal_expenses=exp,
        taxable_products_amount=taxable,
        subtotal_taxes=tax,
        total_amount=total,
        partner_cost=p_cost,
        total_cost=cost,
        gross_profit=total - cost,
        profit_margin=margin_percent(total, cost),
    )
