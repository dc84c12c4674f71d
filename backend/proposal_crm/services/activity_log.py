import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from proposal_crm import models
from proposal_crm.services.financial_engine import quantize_money

logger = logging.getLogger("proposal_crm.activity")


def log_activity(
    db: Session,
    proposal: models.Proposal,
    kind: models.ActivityKind,
    description: str,
    details: str | None = None,
) -> Optional[int]:
    """
    Persist an activity row for the proposal; if the write fails, fall back to the log.

    Callers commit their own mutation first. Returns the activity id when available.
    """
    try:
        activity = models.Activity(
            proposal_id=proposal.id,
            kind=kind,
            description=description[:255],
            details=details,
        )
        db.add(activity)
        db.commit()
        return activity.id
    except SQLAlchemyError:
        db.rollback()
        logger.warning(
            "activity_log_write_failed",
            extra={"proposal_id": proposal.id, "kind": kind.value, "description": description},
        )
        return None


def log_proposal_created(db: Session, proposal: models.Proposal) -> Optional[int]:
    return log_activity(db, proposal, models.ActivityKind.created, "Proposal created")


def log_proposal_updated(
    db: Session, proposal: models.Proposal, field_changed: str
) -> Optional[int]:
    return log_activity(db, proposal, models.ActivityKind.updated, f"Updated {field_changed}")


def log_status_changed(
    db: Session, proposal: models.Proposal, old_status: str, new_status: str
) -> Optional[int]:
    return log_activity(
        db,
        proposal,
        models.ActivityKind.status_changed,
        f"Status changed from {old_status} to {new_status}",
    )


def log_item_added(
    db: Session, proposal: models.Proposal, item_type: str, item_name: str
) -> Optional[int]:
    return log_activity(
        db, proposal, models.ActivityKind.item_added, f"Added {item_type}: {item_name}"
    )


def log_item_removed(
    db: Session, proposal: models.Proposal, item_type: str, item_name: str
) -> Optional[int]:
    return log_activity(
        db, proposal, models.ActivityKind.item_removed, f"Removed {item_type}: {item_name}"
    )


def log_payment_received(
    db: Session, proposal: models.Proposal, term: models.PaymentTerm
) -> Optional[int]:
    return log_activity(
        db,
        proposal,
        models.ActivityKind.payment_received,
        f"Payment received for {term.name or 'payment term'}",
        details=(
            f"Amount: {quantize_money(term.amount)}, Method: {term.payment_method or '-'}, "
            f"Reference: {term.payment_reference or '-'}"
        ),
    )


def log_payment_reverted(
    db: Session, proposal: models.Proposal, term: models.PaymentTerm
) -> Optional[int]:
    return log_activity(
        db,
        proposal,
        models.ActivityKind.payment_reverted,
        f"Payment reverted for {term.name or 'payment term'}",
    )


def log_template_applied(
    db: Session, proposal: models.Proposal, template_name: str, term_count: int
) -> Optional[int]:
    return log_activity(
        db,
        proposal,
        models.ActivityKind.payment_terms_template_applied,
        f"Applied payment template: {template_name}",
        details=f"{term_count} payment terms",
    )


def log_comment_added(db: Session, proposal: models.Proposal, comment: str) -> Optional[int]:
    return log_activity(
        db, proposal, models.ActivityKind.comment_added, "Added comment", details=comment
    )
