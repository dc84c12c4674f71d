from decimal import Decimal
from types import SimpleNamespace

from proposal_crm import models
from proposal_crm.services import activity_log


def _proposal(db) -> models.Proposal:
    proposal = models.Proposal(number="P-100", total_amount=Decimal("0"))
    db.add(proposal)
    db.commit()
    db.refresh(proposal)
    return proposal


def test_log_activity_persists_row(db_session):
    proposal = _proposal(db_session)

    activity_id = activity_log.log_status_changed(db_session, proposal, "Draft", "Sent")

    row = db_session.get(models.Activity, activity_id)
    assert row is not None
    assert row.kind == models.ActivityKind.status_changed
    assert row.description == "Status changed from Draft to Sent"


def test_payment_received_details(db_session):
    proposal = _proposal(db_session)
    term = SimpleNamespace(
        name="Deposit",
        amount=Decimal("1500"),
        payment_method="Bank Transfer",
        payment_reference=None,
    )

    activity_id = activity_log.log_payment_received(db_session, proposal, term)

    row = db_session.get(models.Activity, activity_id)
    assert row.description == "Payment received for Deposit"
    assert row.details == "Amount: 1500.00, Method: Bank Transfer, Reference: -"


def test_log_activity_failure_is_swallowed(db_session, caplog):
    orphan = SimpleNamespace(id=None)

    result = activity_log.log_activity(
        db_session, orphan, models.ActivityKind.comment_added, "Added comment"
    )

    assert result is None
    assert any(r.getMessage() == "activity_log_write_failed" for r in caplog.records)
    assert db_session.query(models.Activity).count() == 0
