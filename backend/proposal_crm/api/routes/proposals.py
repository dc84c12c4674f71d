import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import String, cast, or_
from sqlalchemy.orm import Session

from proposal_crm import models
from proposal_crm.api.deps import get_payment_manager, get_proposal_for_update
from proposal_crm.database import get_db
from proposal_crm.schemas.activities import ActivityRead, CommentCreate
from proposal_crm.schemas.financials import ProposalFinancials, TaxLine
from proposal_crm.schemas.line_items import (
    CustomTaxRead,
    EngineeringRead,
    ExpenseRead,
    LineItemRead,
)
from proposal_crm.schemas.payment_terms import PaymentTermRead
from proposal_crm.schemas.proposals import (
    ProposalCreate,
    ProposalDetail,
    ProposalRead,
    ProposalUpdate,
)
from proposal_crm.services import activity_log
from proposal_crm.services import financial_engine as fe
from proposal_crm.services.payment_schedule import PaymentScheduleManager, sorted_terms

logger = logging.getLogger("proposal_crm.proposals")

router = APIRouter(prefix="/proposals", tags=["proposals"])


def _get_proposal(db: Session, proposal_id: int) -> models.Proposal:
    proposal = db.get(models.Proposal, proposal_id)
    if not proposal:
        raise HTTPException(status_code=404, detail="Proposal not found")
    return proposal


def proposal_detail(
    proposal: models.Proposal, manager: PaymentScheduleManager
) -> ProposalDetail:
    base = ProposalRead.model_validate(proposal)
    return ProposalDetail(
        **base.model_dump(),
        payment_terms_text=proposal.payment_terms_text,
        deposit_required=bool(proposal.deposit_required),
        deposit_amount=float(fe.to_decimal(proposal.deposit_amount)),
        deposit_percentage=float(fe.to_decimal(proposal.deposit_percentage)),
        deposit_due=float(manager.deposit_amount(proposal)),
        accepted_payment_methods=list(proposal.accepted_payment_methods or []),
        late_penalty=proposal.late_penalty,
        invoice_schedule=proposal.invoice_schedule,
        custom_terms=proposal.custom_terms,
        items=[LineItemRead.from_item(i) for i in proposal.items],
        engineering=[EngineeringRead.model_validate(e) for e in proposal.engineering],
        expenses=[ExpenseRead.model_validate(e) for e in proposal.expenses],
        taxes=[CustomTaxRead.model_validate(t) for t in proposal.taxes],
        payment_terms=[
            PaymentTermRead.from_term(t, proposal, manager)
            for t in sorted_terms(proposal.payment_terms)
        ],
    )


def _apply_payment_conditions(proposal: models.Proposal, payload: ProposalUpdate) -> bool:
    changed = False
    if payload.payment_terms_text is not None:
        proposal.payment_terms_text = payload.payment_terms_text.strip() or None
        changed = True
    if payload.deposit_required is not None:
        proposal.deposit_required = payload.deposit_required
        changed = True
    if payload.deposit_amount is not None:
        proposal.deposit_amount = fe.quantize_money(payload.deposit_amount)
        changed = True
    if payload.deposit_percentage is not None:
        proposal.deposit_percentage = fe.to_decimal(payload.deposit_percentage)
        changed = True
    if payload.accepted_payment_methods is not None:
        proposal.accepted_payment_methods = payload.accepted_payment_methods
        changed = True
    for field in ("late_penalty", "invoice_schedule", "custom_terms"):
        value = getattr(payload, field)
        if value is not None:
            setattr(proposal, field, value.strip() or None)
            changed = True
    return changed


@router.get("", response_model=list[ProposalRead])
def list_proposals(
    q: str | None = Query(None, min_length=1, max_length=120),
    status: models.ProposalStatus | None = Query(None),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
):
    query = db.query(models.Proposal)

    if status is not None:
        query = query.filter(models.Proposal.status == status)

    if q:
        q_str = q.strip()
        q_like = f"%{q_str}%"
        query = query.filter(
            or_(
                models.Proposal.number.ilike(q_like),
                models.Proposal.customer_name.ilike(q_like),
                cast(models.Proposal.id, String).ilike(f"{q_str}%"),
            )
        )

    return query.order_by(models.Proposal.id.desc()).limit(limit).all()


@router.post("", response_model=ProposalDetail, status_code=201)
def create_proposal(
    payload: ProposalCreate,
    db: Session = Depends(get_db),
    manager: PaymentScheduleManager = Depends(get_payment_manager),
):
    proposal = models.Proposal(
        number=(payload.number or "").strip() or None,
        customer_name=(payload.customer_name or "").strip() or None,
        notes=payload.notes,
        invoice_date=payload.invoice_date,
        status=models.ProposalStatus.draft,
        total_amount=fe.ZERO,
    )
    db.add(proposal)
    db.commit()
    db.refresh(proposal)
    activity_log.log_proposal_created(db, proposal)
    return proposal_detail(proposal, manager)


@router.get("/{proposal_id}", response_model=ProposalDetail)
def get_proposal(
    proposal_id: int,
    db: Session = Depends(get_db),
    manager: PaymentScheduleManager = Depends(get_payment_manager),
):
    return proposal_detail(_get_proposal(db, proposal_id), manager)


@router.patch("/{proposal_id}", response_model=ProposalDetail)
def update_proposal(
    proposal_id: int,
    payload: ProposalUpdate,
    db: Session = Depends(get_db),
    manager: PaymentScheduleManager = Depends(get_payment_manager),
):
    proposal = get_proposal_for_update(proposal_id, db)

    changed: list[str] = []
    if payload.number is not None:
        proposal.number = payload.number.strip() or None
        changed.append("number")
    if payload.customer_name is not None:
        proposal.customer_name = payload.customer_name.strip() or None
        changed.append("customer")
    if payload.notes is not None:
        proposal.notes = payload.notes
        changed.append("notes")
    if payload.invoice_date is not None:
        proposal.invoice_date = payload.invoice_date
        changed.append("invoice date")
    if _apply_payment_conditions(proposal, payload):
        changed.append("payment conditions")

    old_status = proposal.status
    if payload.status is not None and payload.status != old_status:
        proposal.status = payload.status
        if payload.status == models.ProposalStatus.sent and proposal.sent_at is None:
            proposal.sent_at = datetime.utcnow()

    db.commit()
    db.refresh(proposal)

    if proposal.status != old_status:
        logger.info(
            "proposal_status_changed",
            extra={
                "proposal_id": proposal.id,
                "from": old_status.value,
                "to": proposal.status.value,
            },
        )
        activity_log.log_status_changed(db, proposal, old_status.value, proposal.status.value)
    if changed:
        activity_log.log_proposal_updated(db, proposal, ", ".join(changed))

    return proposal_detail(proposal, manager)


@router.delete("/{proposal_id}", status_code=204)
def delete_proposal(proposal_id: int, db: Session = Depends(get_db)):
    proposal = get_proposal_for_update(proposal_id, db)
    db.delete(proposal)
    db.commit()
    logger.info("proposal_deleted", extra={"proposal_id": proposal_id})


@router.get("/{proposal_id}/financials", response_model=ProposalFinancials)
def get_proposal_financials(proposal_id: int, db: Session = Depends(get_db)):
    proposal = _get_proposal(db, proposal_id)
    summary = fe.summarize(proposal)
    base = summary.taxable_products_amount

    return ProposalFinancials(
        proposal_id=proposal.id,
        subtotal_products=float(fe.quantize_money(summary.subtotal_products)),
        subtotal_engineering=float(fe.quantize_money(summary.subtotal_engineering)),
        subtotal_expenses=float(fe.quantize_money(summary.subtotal_expenses)),
        taxable_products_amount=float(fe.quantize_money(base)),
        subtotal_taxes=float(fe.quantize_money(summary.subtotal_taxes)),
        total_amount=float(fe.quantize_money(summary.total_amount)),
        partner_cost=float(fe.quantize_money(summary.partner_cost)),
        total_cost=float(fe.quantize_money(summary.total_cost)),
        gross_profit=float(fe.quantize_money(summary.gross_profit)),
        profit_margin=float(fe.quantize_money(summary.profit_margin)),
        taxes=[
            TaxLine(
                id=tax.id,
                name=tax.name,
                rate=float(tax.rate),
                amount=float(fe.quantize_money(amount)),
            )
            for tax, amount in fe.tax_breakdown(proposal.taxes, base)
        ],
    )


@router.get("/{proposal_id}/activities", response_model=list[ActivityRead])
def list_activities(
    proposal_id: int,
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
):
    _get_proposal(db, proposal_id)
    return (
        db.query(models.Activity)
        .filter(models.Activity.proposal_id == proposal_id)
        .order_by(models.Activity.id.desc())
        .limit(limit)
        .all()
    )


@router.post("/{proposal_id}/activities", response_model=list[ActivityRead], status_code=201)
def add_comment(proposal_id: int, payload: CommentCreate, db: Session = Depends(get_db)):
    proposal = _get_proposal(db, proposal_id)
    comment = payload.comment.strip()
    if not comment:
        raise HTTPException(status_code=400, detail="Comment must not be empty")
    activity_log.log_comment_added(db, proposal, comment)
    return list_activities(proposal_id, limit=100, db=db)
