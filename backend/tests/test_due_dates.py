import logging
from datetime import date, datetime
from types import SimpleNamespace

import pytest

from proposal_crm.services.due_dates import (
    NOT_SPECIFIED,
    DueAnchor,
    DueCondition,
    DueDays,
    DueOn,
    anchor_date,
    apply_due_spec,
    describe_due,
    due_spec_of,
    resolve_due_date,
)


def _term(**kwargs):
    fields = {"id": 1, "due_condition": None, "due_days": None, "due_date": None}
    fields.update(kwargs)
    return SimpleNamespace(**fields)


def _proposal(**kwargs):
    fields = {"created_at": datetime(2025, 1, 1, 9, 30), "sent_at": None, "invoice_date": None}
    fields.update(kwargs)
    return SimpleNamespace(**fields)


def _set_count(term) -> int:
    return sum(
        [
            bool(term.due_condition),
            bool(term.due_days),
            term.due_date is not None,
        ]
    )


@pytest.mark.parametrize(
    "spec",
    [DueCondition("Upon signing"), DueDays(30), DueOn(date(2025, 6, 1))],
)
def test_apply_due_spec_leaves_exactly_one_field(spec):
    term = _term(due_condition="Old", due_days=15, due_date=date(2024, 1, 1))

    apply_due_spec(term, spec)

    assert _set_count(term) == 1
    assert due_spec_of(term) == spec


def test_apply_due_spec_rejects_empty_condition_and_non_positive_days():
    with pytest.raises(ValueError):
        apply_due_spec(_term(), DueCondition("   "))
    with pytest.raises(ValueError):
        apply_due_spec(_term(), DueDays(0))


def test_ambiguous_legacy_record_prefers_date_and_warns(caplog):
    term = _term(due_condition="Upon signing", due_days=30, due_date=date(2025, 2, 1))

    with caplog.at_level(logging.WARNING, logger="proposal_crm.payments"):
        spec = due_spec_of(term)

    assert spec == DueOn(date(2025, 2, 1))
    assert any(r.getMessage() == "payment_term_ambiguous_due_spec" for r in caplog.records)


def test_days_win_over_condition():
    assert due_spec_of(_term(due_condition="Upon delivery", due_days=60)) == DueDays(60)


def test_describe_due_variants():
    assert describe_due(_term(due_date=date(2025, 3, 5))) == "Due: Mar 05, 2025"
    assert describe_due(_term(due_days=30)) == "Net 30 days"
    assert describe_due(_term(due_condition="Upon signing")) == "Upon signing"
    assert describe_due(_term()) == NOT_SPECIFIED


def test_resolve_due_date_from_creation_anchor():
    term = _term(due_days=30)

    assert resolve_due_date(term, _proposal()) == date(2025, 1, 31)


def test_resolve_due_date_condition_has_no_date():
    assert resolve_due_date(_term(due_condition="Upon signing"), _proposal()) is None


def test_absolute_date_ignores_anchor():
    term = _term(due_date=date(2025, 4, 1))

    for anchor in DueAnchor:
        assert resolve_due_date(term, _proposal(), anchor=anchor) == date(2025, 4, 1)


def test_sent_and_invoice_anchors_fall_back_to_creation():
    proposal = _proposal()
    now = datetime(2025, 5, 1)

    assert anchor_date(proposal, DueAnchor.sent, now) == date(2025, 1, 1)
    assert anchor_date(proposal, DueAnchor.invoice, now) == date(2025, 1, 1)

    proposal = _proposal(sent_at=datetime(2025, 2, 10, 17, 0), invoice_date=date(2025, 2, 15))
    assert anchor_date(proposal, DueAnchor.sent, now) == date(2025, 2, 10)
    assert anchor_date(proposal, DueAnchor.invoice, now) == date(2025, 2, 15)


def test_evaluation_anchor_moves_with_now():
    term = _term(due_days=30)
    now = datetime(2025, 5, 1, 12, 0)

    assert resolve_due_date(term, _proposal(), anchor=DueAnchor.evaluation, now=now) == date(
        2025, 5, 31
    )
