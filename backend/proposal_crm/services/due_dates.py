from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Optional, Union

logger = logging.getLogger("proposal_crm.payments")

NOT_SPECIFIED = "Due date not specified"


@dataclass(frozen=True)
class DueCondition:
    text: str


@dataclass(frozen=True)
class DueDays:
    days: int


@dataclass(frozen=True)
class DueOn:
    date: date


DueSpec = Union[DueCondition, DueDays, DueOn]


class DueAnchor(str, Enum):
    """Reference date that "Net N days" terms count from."""

    created = "created"
    sent = "sent"
    invoice = "invoice"
    # Counts from the moment of evaluation, so such terms never become overdue.
    evaluation = "evaluation"


def apply_due_spec(term: Any, spec: DueSpec) -> None:
    """Store ``spec`` on the term's flat columns, clearing the other two."""

    if isinstance(spec, DueCondition):
        text = (spec.text or "").strip()
        if not text:
            raise ValueError("due condition must not be empty")
        term.due_condition, term.due_days, term.due_date = text, None, None
    elif isinstance(spec, DueDays):
        days = int(spec.days)
        if days <= 0:
            raise ValueError("due days must be positive")
        term.due_condition, term.due_days, term.due_date = None, days, None
    elif isinstance(spec, DueOn):
        term.due_condition, term.due_days, term.due_date = None, None, _to_date(spec.date)
    else:
        raise ValueError(f"unsupported due spec: {spec!r}")


def due_spec_of(term: Any) -> Optional[DueSpec]:
    """Read the due spec back; date wins over days, days over condition."""

    due_date = _to_date(getattr(term, "due_date", None))
    due_days = getattr(term, "due_days", None)
    condition = (getattr(term, "due_condition", None) or "").strip()

    present = [
        name
        for name, value in (("date", due_date), ("days", due_days), ("condition", condition))
        if value
    ]
    if len(present) > 1:
        logger.warning(
            "payment_term_ambiguous_due_spec",
            extra={"term_id": getattr(term, "id", None), "fields": present},
        )

    if due_date is not None:
        return DueOn(due_date)
    if due_days:
        return DueDays(int(due_days))
    if condition:
        return DueCondition(condition)
    return None


def anchor_date(proposal: Any, anchor: DueAnchor, now: datetime) -> date:
    created = _to_date(getattr(proposal, "created_at", None)) or now.date()
    if anchor == DueAnchor.evaluation:
        return now.date()
    if anchor == DueAnchor.sent:
        return _to_date(getattr(proposal, "sent_at", None)) or created
    if anchor == DueAnchor.invoice:
        return _to_date(getattr(proposal, "invoice_date", None)) or created
    return created


def resolve_due_date(
    term: Any,
    proposal: Any,
    *,
    anchor: DueAnchor = DueAnchor.created,
    now: datetime | None = None,
) -> Optional[date]:
    """Absolute due date of a term, or None for condition-based terms."""

    now = now or datetime.utcnow()
    spec = due_spec_of(term)
    if isinstance(spec, DueOn):
        return spec.date
    if isinstance(spec, DueDays):
        return anchor_date(proposal, anchor, now) + timedelta(days=spec.days)
    return None


def describe_due(term: Any) -> str:
    return describe_spec(due_spec_of(term))


def describe_spec(spec: Optional[DueSpec]) -> str:
    if isinstance(spec, DueOn):
        return f"Due: {spec.date.strftime('%b %d, %Y')}"
    if isinstance(spec, DueDays):
        return f"Net {spec.days} days"
    if isinstance(spec, DueCondition):
        return spec.text
    return NOT_SPECIFIED


def _to_date(v: Any) -> Optional[date]:
    if v is None:
        return None
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, date):
        return v
    if isinstance(v, str):
        s = v.strip()
        if not s:
            return None
        try:
            return datetime.fromisoformat(s.replace("Z", "+00:00")).date()
        except ValueError:
            return None
    return None
