from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from proposal_crm import models
from proposal_crm.services import financial_engine as fe
from proposal_crm.services.payment_schedule import PaymentScheduleManager

logger = logging.getLogger("proposal_crm.proposals")


def lock_proposal(db: Session, proposal_id: int) -> models.Proposal | None:
    """Load a proposal for mutation, holding a row lock where supported."""

    q = db.query(models.Proposal).filter(models.Proposal.id == int(proposal_id))

    dialect_name = getattr(getattr(db, "bind", None), "dialect", None)
    dialect_name = getattr(dialect_name, "name", None)
    # SQLite doesn't support FOR UPDATE; other DBs serialize edits per proposal.
    if dialect_name and str(dialect_name).lower() not in {"sqlite"}:
        q = q.with_for_update()

    return q.first()


def recalculate_proposal(
    db: Session | None,
    proposal: models.Proposal,
    *,
    manager: PaymentScheduleManager | None = None,
) -> fe.FinancialSummary:
    """Refresh every cached figure of a proposal after a child mutation.

    Order matters: line amounts feed the tax base, taxes feed the total and
    the total feeds the payment-term amounts. Flushes but does not commit.
    """

    for item in proposal.items:
        item.amount = fe.quantize_money(fe.line_item_amount(item))
    for entry in proposal.engineering:
        entry.amount = fe.quantize_money(fe.engineering_amount(entry))

    base = fe.taxable_products_amount(proposal.items)
    for tax, amount in fe.tax_breakdown(proposal.taxes, base):
        tax.amount = fe.quantize_money(amount)

    summary = fe.summarize(proposal)
    previous = fe.to_decimal(proposal.total_amount)
    proposal.total_amount = fe.quantize_money(summary.total_amount)

    manager = manager or PaymentScheduleManager.from_settings(db)
    manager.recompute_amounts(proposal)

    if db is not None:
        db.flush()

    if previous != proposal.total_amount:
        logger.info(
            "proposal_total_recalculated",
            extra={
                "proposal_id": proposal.id,
                "previous_total": str(previous),
                "total": str(proposal.total_amount),
            },
        )
    return summary
