from typing import List

from pydantic import BaseModel, Field


class TaxLine(BaseModel):
    id: int
    name: str
    rate: float
    amount: float


class ProposalFinancials(BaseModel):
    """Figures of the financial engine; costs are partner-side, totals customer-side."""

    proposal_id: int
    subtotal_products: float
    subtotal_engineering: float
    subtotal_expenses: float
    taxable_products_amount: float
    subtotal_taxes: float
    total_amount: float
    partner_cost: float
    total_cost: float
    gross_profit: float
    profit_margin: float
    taxes: List[TaxLine] = Field(default_factory=list)
