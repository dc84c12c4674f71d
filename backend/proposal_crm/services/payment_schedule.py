"""Payment schedule of a proposal.

Percentages are the durable source of truth for every term; amounts are
always derived from the proposal's cached ``total_amount``. Each term moves
Pending -> Paid and may be reverted to Pending.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Iterable, List, Optional

from sqlalchemy.orm import Session

from proposal_crm import models
from proposal_crm.services.due_dates import (
    DueAnchor,
    DueSpec,
    apply_due_spec,
    resolve_due_date,
)
from proposal_crm.services.financial_engine import (
    HUNDRED,
    ONE,
    ZERO,
    quantize_money,
    to_decimal,
)
from proposal_crm.services.payment_templates import PaymentTemplate

logger = logging.getLogger("proposal_crm.payments")

PAYMENT_METHODS = ["Bank Transfer", "Credit Card", "Check", "Cash", "PayPal", "Other"]

_NAME_ORDINALS = (
    ("first", 1),
    ("second", 2),
    ("third", 3),
    ("fourth", 4),
    ("final", 4),
)
_UNORDERED = 10**9


def normalize_payment_method(value: Optional[str]) -> str:
    """Canonical spelling of a known payment method, matched case-insensitively."""
    s = (value or "").strip()
    for known in PAYMENT_METHODS:
        if s.lower() == known.lower():
            return known
    raise ValueError(f"method must be one of: {', '.join(PAYMENT_METHODS)}")


class PaymentStateError(Exception):
    """Raised for a transition the Pending/Paid state machine does not allow."""


class PaymentStatusLabel(str, Enum):
    no_terms = "no_terms"
    unpaid = "unpaid"
    partially_paid = "partially_paid"
    overdue = "overdue"
    fully_paid = "fully_paid"


@dataclass(frozen=True)
class PercentageCheck:
    total: Decimal
    difference: Decimal
    is_valid: bool


@dataclass(frozen=True)
class PaymentSummary:
    total_amount: Decimal
    paid_amount: Decimal
    due_amount: Decimal
    progress: Decimal
    has_overdue: bool
    is_fully_paid: bool
    status: PaymentStatusLabel
    percentage: PercentageCheck


def is_paid(term: Any) -> bool:
    return getattr(term, "status", None) == models.PaymentStatus.paid


def name_ordinal(name: Optional[str]) -> Optional[int]:
    """Installment ordinal guessed from a legacy term name."""
    lowered = (name or "").lower()
    for token, ordinal in _NAME_ORDINALS:
        if token in lowered:
            return ordinal
    return None


def _sort_key(term: Any):
    seq = getattr(term, "sequence_number", None)
    if seq is not None:
        return (0, int(seq), 0, 0, Decimal("0"))
    ordinal = name_ordinal(getattr(term, "name", None))
    return (
        1,
        0,
        ordinal if ordinal is not None else _UNORDERED,
        int(getattr(term, "due_days", None) or 0),
        -to_decimal(getattr(term, "percentage", None)),
    )


def sorted_terms(terms: Iterable[Any]) -> List[Any]:
    """Display order: explicit sequence number, then legacy name/days/percentage."""
    return sorted(terms, key=_sort_key)


def total_percentage(terms: Iterable[Any]) -> Decimal:
    return sum((to_decimal(getattr(t, "percentage", None)) for t in terms), ZERO)


def percentage_check(terms: Iterable[Any], *, tolerance: Any = "0.01") -> PercentageCheck:
    total = total_percentage(terms)
    diff = total - HUNDRED
    return PercentageCheck(
        total=total, difference=diff, is_valid=abs(diff) <= to_decimal(tolerance)
    )


def describe_term(term: Any) -> str:
    if getattr(term, "description", None):
        return term.description
    pct = to_decimal(getattr(term, "percentage", None))
    label = f"{int(pct)}%"
    if pct <= 30:
        return f"{label} initial payment"
    if pct >= 70:
        return f"{label} final payment"
    return f"{label} progress payment"


class PaymentScheduleManager:
    def __init__(
        self,
        db: Session | None = None,
        *,
        anchor: DueAnchor | str = DueAnchor.created,
        clock: Callable[[], datetime] | None = None,
        paid_tolerance: Any = "0.01",
        percentage_tolerance: Any = "0.01",
    ) -> None:
        self.db = db
        self.anchor = DueAnchor(anchor)
        self.clock = clock or datetime.utcnow
        self.paid_tolerance = to_decimal(paid_tolerance)
        self.percentage_tolerance = to_decimal(percentage_tolerance)

    @classmethod
    def from_settings(cls, db: Session | None = None, **overrides) -> "PaymentScheduleManager":
        from proposal_crm.config import settings

        kwargs = {
            "anchor": settings.payment_due_anchor,
            "paid_tolerance": settings.paid_tolerance,
            "percentage_tolerance": settings.percentage_tolerance,
        }
        kwargs.update(overrides)
        return cls(db, **kwargs)

    # -- writes ------------------------------------------------------------

    def _amount_for(self, proposal: Any, percentage: Any) -> Decimal:
        return quantize_money(to_decimal(proposal.total_amount) * to_decimal(percentage) / HUNDRED)

    def _next_sequence(self, proposal: Any) -> int:
        seqs = [t.sequence_number for t in proposal.payment_terms if t.sequence_number is not None]
        return (max(seqs) + 1) if seqs else 1

    def _flush(self) -> None:
        if self.db is not None:
            self.db.flush()

    def create_term(
        self,
        proposal: models.Proposal,
        name: str,
        percentage: Any,
        due: DueSpec,
        *,
        description: str | None = None,
        sequence_number: int | None = None,
    ) -> models.PaymentTerm:
        term = models.PaymentTerm(
            name=name,
            description=description,
            percentage=to_decimal(percentage),
            status=models.PaymentStatus.pending,
            sequence_number=(
                sequence_number if sequence_number is not None else self._next_sequence(proposal)
            ),
        )
        apply_due_spec(term, due)
        term.amount = self._amount_for(proposal, term.percentage)
        proposal.payment_terms.append(term)
        self._flush()
        return term

    def update_term(
        self,
        term: models.PaymentTerm,
        *,
        name: str | None = None,
        percentage: Any = None,
        due: DueSpec | None = None,
        description: str | None = None,
        sequence_number: int | None = None,
    ) -> models.PaymentTerm:
        if name is not None:
            term.name = name
        if description is not None:
            term.description = description or None
        if sequence_number is not None:
            term.sequence_number = sequence_number
        if due is not None:
            apply_due_spec(term, due)
        if percentage is not None:
            term.percentage = to_decimal(percentage)
        term.amount = self._amount_for(term.proposal, term.percentage)
        self._flush()
        return term

    def remove_term(self, proposal: models.Proposal, term: models.PaymentTerm) -> None:
        proposal.payment_terms.remove(term)
        self._flush()

    def apply_template(
        self, proposal: models.Proposal, template: PaymentTemplate
    ) -> List[models.PaymentTerm]:
        """Replace every existing term with the template's lines."""

        removed = len(proposal.payment_terms)
        for term in list(proposal.payment_terms):
            proposal.payment_terms.remove(term)
        self._flush()

        created = [
            self.create_term(
                proposal,
                line.name,
                line.percentage,
                line.due,
                description=line.description,
                sequence_number=index,
            )
            for index, line in enumerate(template.lines, start=1)
        ]
        logger.info(
            "payment_template_applied",
            extra={
                "proposal_id": getattr(proposal, "id", None),
                "template": template.name,
                "terms_removed": removed,
                "terms_created": len(created),
            },
        )
        return created

    def recompute_amounts(self, proposal: models.Proposal) -> List[models.PaymentTerm]:
        for term in proposal.payment_terms:
            term.amount = self._amount_for(proposal, term.percentage)
        self._flush()
        return list(proposal.payment_terms)

    def record_payment(
        self,
        term: models.PaymentTerm,
        *,
        paid_on: date | None = None,
        method: str | None = None,
        reference: str | None = None,
    ) -> models.PaymentTerm:
        if is_paid(term):
            raise PaymentStateError(f"Payment term {term.id} is already paid")
        term.status = models.PaymentStatus.paid
        term.payment_date = paid_on or self.clock().date()
        term.payment_method = method or PAYMENT_METHODS[0]
        term.payment_reference = (reference or "").strip() or None
        self._flush()
        logger.info(
            "payment_recorded",
            extra={
                "term_id": term.id,
                "proposal_id": term.proposal_id,
                "amount": str(term.amount),
                "method": term.payment_method,
            },
        )
        return term

    def undo_payment(self, term: models.PaymentTerm) -> models.PaymentTerm:
        if not is_paid(term):
            raise PaymentStateError(f"Payment term {term.id} is not paid")
        term.status = models.PaymentStatus.pending
        term.payment_date = None
        term.payment_method = None
        term.payment_reference = None
        self._flush()
        logger.info(
            "payment_reverted", extra={"term_id": term.id, "proposal_id": term.proposal_id}
        )
        return term

    # -- reads -------------------------------------------------------------

    def due_date_of(self, term: Any, proposal: Any) -> Optional[date]:
        return resolve_due_date(term, proposal, anchor=self.anchor, now=self.clock())

    def is_overdue(self, term: Any, proposal: Any) -> bool:
        if is_paid(term):
            return False
        due = self.due_date_of(term, proposal)
        return due is not None and due < self.clock().date()

    def has_overdue_payments(self, proposal: Any) -> bool:
        return any(self.is_overdue(t, proposal) for t in proposal.payment_terms)

    def total_paid_amount(self, proposal: Any) -> Decimal:
        return sum(
            (to_decimal(t.amount) for t in proposal.payment_terms if is_paid(t)),
            ZERO,
        )

    def total_due_amount(self, proposal: Any) -> Decimal:
        return to_decimal(proposal.total_amount) - self.total_paid_amount(proposal)

    def is_fully_paid(self, proposal: Any) -> bool:
        if not proposal.payment_terms:
            return False
        return self.total_due_amount(proposal) <= self.paid_tolerance

    def payment_progress(self, proposal: Any) -> Decimal:
        total = to_decimal(proposal.total_amount)
        if total <= ZERO:
            return ZERO
        return max(ZERO, min(ONE, self.total_paid_amount(proposal) / total))

    def payment_status(self, proposal: Any) -> PaymentStatusLabel:
        if not proposal.payment_terms:
            return PaymentStatusLabel.no_terms
        if self.is_fully_paid(proposal):
            return PaymentStatusLabel.fully_paid
        if self.has_overdue_payments(proposal):
            return PaymentStatusLabel.overdue
        if self.total_paid_amount(proposal) > ZERO:
            return PaymentStatusLabel.partially_paid
        return PaymentStatusLabel.unpaid

    def deposit_amount(self, proposal: Any) -> Decimal:
        """Up-front deposit: a share of the total when a percentage is set, else the fixed amount."""
        pct = to_decimal(getattr(proposal, "deposit_percentage", None))
        if pct > ZERO:
            return quantize_money(to_decimal(proposal.total_amount) * pct / HUNDRED)
        return quantize_money(getattr(proposal, "deposit_amount", None))

    def percentage_check(self, proposal: Any) -> PercentageCheck:
        return percentage_check(proposal.payment_terms, tolerance=self.percentage_tolerance)

    def summary(self, proposal: Any) -> PaymentSummary:
        return PaymentSummary(
            total_amount=to_decimal(proposal.total_amount),
            paid_amount=self.total_paid_amount(proposal),
            due_amount=self.total_due_amount(proposal),
            progress=self.payment_progress(proposal),
            has_overdue=self.has_overdue_payments(proposal),
            is_fully_paid=self.is_fully_paid(proposal),
            status=self.payment_status(proposal),
            percentage=self.percentage_check(proposal),
        )
