from fastapi import Depends, HTTPException
from sqlalchemy.orm import Session

from proposal_crm import models
from proposal_crm.database import get_db
from proposal_crm.services.payment_schedule import PaymentScheduleManager
from proposal_crm.services.proposal_totals import lock_proposal

_DB_DEP = Depends(get_db)


def get_payment_manager(db: Session = _DB_DEP) -> PaymentScheduleManager:
    return PaymentScheduleManager.from_settings(db)


def get_proposal_for_update(proposal_id: int, db: Session) -> models.Proposal:
    """Locked proposal row, or 404."""
    proposal = lock_proposal(db, proposal_id)
    if not proposal:
        raise HTTPException(status_code=404, detail="Proposal not found")
    return proposal
