import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from proposal_crm import models
from proposal_crm.api.deps import get_payment_manager, get_proposal_for_update
from proposal_crm.database import get_db
from proposal_crm.schemas.payment_terms import (
    PaymentRecord,
    PaymentStatusRead,
    PaymentTemplateRead,
    PaymentTermCreate,
    PaymentTermRead,
    PaymentTermUpdate,
    PercentageCheckRead,
    TemplateApply,
    TemplateLineRead,
)
from proposal_crm.services import activity_log
from proposal_crm.services import financial_engine as fe
from proposal_crm.services.due_dates import describe_spec
from proposal_crm.services.payment_schedule import (
    PaymentScheduleManager,
    PaymentStateError,
    sorted_terms,
)
from proposal_crm.services.payment_templates import get_template, list_templates
from proposal_crm.services.proposal_totals import recalculate_proposal

logger = logging.getLogger("proposal_crm.payments")

router = APIRouter(prefix="/proposals/{proposal_id}/payment-terms", tags=["payment-terms"])
templates_router = APIRouter(prefix="/payment-templates", tags=["payment-terms"])


def _get_proposal(db: Session, proposal_id: int) -> models.Proposal:
    proposal = db.get(models.Proposal, proposal_id)
    if not proposal:
        raise HTTPException(status_code=404, detail="Proposal not found")
    return proposal


def _get_term(proposal: models.Proposal, term_id: int) -> models.PaymentTerm:
    for term in proposal.payment_terms:
        if term.id == term_id:
            return term
    raise HTTPException(status_code=404, detail="Payment term not found")


def _terms_read(proposal: models.Proposal, manager: PaymentScheduleManager):
    return [
        PaymentTermRead.from_term(t, proposal, manager)
        for t in sorted_terms(proposal.payment_terms)
    ]


def _warn_if_percentages_off(proposal: models.Proposal, manager: PaymentScheduleManager) -> None:
    check = manager.percentage_check(proposal)
    if not check.is_valid:
        logger.warning(
            "payment_terms_percentage_mismatch",
            extra={"proposal_id": proposal.id, "total_percentage": str(check.total)},
        )


@router.get("", response_model=list[PaymentTermRead])
def list_payment_terms(
    proposal_id: int,
    db: Session = Depends(get_db),
    manager: PaymentScheduleManager = Depends(get_payment_manager),
):
    return _terms_read(_get_proposal(db, proposal_id), manager)


@router.post("", response_model=PaymentTermRead, status_code=201)
def create_payment_term(
    proposal_id: int,
    payload: PaymentTermCreate,
    db: Session = Depends(get_db),
    manager: PaymentScheduleManager = Depends(get_payment_manager),
):
    proposal = get_proposal_for_update(proposal_id, db)
    try:
        term = manager.create_term(
            proposal,
            payload.name.strip(),
            payload.percentage,
            payload.due.to_spec(),
            description=(payload.description or "").strip() or None,
            sequence_number=payload.sequence_number,
        )
    except ValueError as exc:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(exc))

    recalculate_proposal(db, proposal, manager=manager)
    db.commit()
    db.refresh(term)

    _warn_if_percentages_off(proposal, manager)
    activity_log.log_item_added(db, proposal, "payment term", term.name)
    return PaymentTermRead.from_term(term, proposal, manager)


@router.patch("/{term_id}", response_model=PaymentTermRead)
def update_payment_term(
    proposal_id: int,
    term_id: int,
    payload: PaymentTermUpdate,
    db: Session = Depends(get_db),
    manager: PaymentScheduleManager = Depends(get_payment_manager),
):
    proposal = get_proposal_for_update(proposal_id, db)
    term = _get_term(proposal, term_id)
    try:
        manager.update_term(
            term,
            name=payload.name.strip() if payload.name is not None else None,
            percentage=payload.percentage,
            due=payload.due.to_spec() if payload.due is not None else None,
            description=payload.description,
            sequence_number=payload.sequence_number,
        )
    except ValueError as exc:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(exc))

    db.commit()
    db.refresh(term)

    _warn_if_percentages_off(proposal, manager)
    activity_log.log_proposal_updated(db, proposal, f"payment term {term.name}")
    return PaymentTermRead.from_term(term, proposal, manager)


@router.delete("/{term_id}", status_code=204)
def delete_payment_term(
    proposal_id: int,
    term_id: int,
    db: Session = Depends(get_db),
    manager: PaymentScheduleManager = Depends(get_payment_manager),
):
    proposal = get_proposal_for_update(proposal_id, db)
    term = _get_term(proposal, term_id)
    name = term.name

    manager.remove_term(proposal, term)
    db.commit()
    activity_log.log_item_removed(db, proposal, "payment term", name)


@router.post("/template", response_model=list[PaymentTermRead])
def apply_payment_template(
    proposal_id: int,
    payload: TemplateApply,
    db: Session = Depends(get_db),
    manager: PaymentScheduleManager = Depends(get_payment_manager),
):
    try:
        template = get_template(payload.template)
    except KeyError:
        raise HTTPException(status_code=400, detail=f"Unknown payment template: {payload.template}")

    proposal = get_proposal_for_update(proposal_id, db)
    recalculate_proposal(db, proposal, manager=manager)
    created = manager.apply_template(proposal, template)
    db.commit()
    db.refresh(proposal)

    activity_log.log_template_applied(db, proposal, template.name, len(created))
    return _terms_read(proposal, manager)


@router.post("/{term_id}/payment", response_model=PaymentTermRead)
def record_payment(
    proposal_id: int,
    term_id: int,
    payload: PaymentRecord,
    db: Session = Depends(get_db),
    manager: PaymentScheduleManager = Depends(get_payment_manager),
):
    proposal = get_proposal_for_update(proposal_id, db)
    term = _get_term(proposal, term_id)
    try:
        manager.record_payment(
            term,
            paid_on=payload.payment_date,
            method=payload.method,
            reference=payload.reference,
        )
    except PaymentStateError as exc:
        db.rollback()
        raise HTTPException(status_code=409, detail=str(exc))

    db.commit()
    db.refresh(term)

    activity_log.log_payment_received(db, proposal, term)
    return PaymentTermRead.from_term(term, proposal, manager)


@router.delete("/{term_id}/payment", response_model=PaymentTermRead)
def undo_payment(
    proposal_id: int,
    term_id: int,
    db: Session = Depends(get_db),
    manager: PaymentScheduleManager = Depends(get_payment_manager),
):
    proposal = get_proposal_for_update(proposal_id, db)
    term = _get_term(proposal, term_id)
    try:
        manager.undo_payment(term)
    except PaymentStateError as exc:
        db.rollback()
        raise HTTPException(status_code=409, detail=str(exc))

    db.commit()
    db.refresh(term)

    activity_log.log_payment_reverted(db, proposal, term)
    return PaymentTermRead.from_term(term, proposal, manager)


@router.get("/status", response_model=PaymentStatusRead)
def get_payment_status(
    proposal_id: int,
    db: Session = Depends(get_db),
    manager: PaymentScheduleManager = Depends(get_payment_manager),
):
    summary = manager.summary(_get_proposal(db, proposal_id))
    return PaymentStatusRead(
        total_amount=float(fe.quantize_money(summary.total_amount)),
        paid_amount=float(fe.quantize_money(summary.paid_amount)),
        due_amount=float(fe.quantize_money(summary.due_amount)),
        progress=float(summary.progress),
        has_overdue=summary.has_overdue,
        is_fully_paid=summary.is_fully_paid,
        status=summary.status.value,
        percentage=PercentageCheckRead(
            total=float(summary.percentage.total),
            difference=float(summary.percentage.difference),
            is_valid=summary.percentage.is_valid,
        ),
    )


@templates_router.get("", response_model=list[PaymentTemplateRead])
def list_payment_templates():
    return [
        PaymentTemplateRead(
            name=t.name,
            description=t.description,
            total_percentage=float(t.total_percentage),
            lines=[
                TemplateLineRead(
                    name=line.name,
                    percentage=float(line.percentage),
                    due_display=describe_spec(line.due),
                    description=line.description,
                )
                for line in t.lines
            ],
        )
        for t in list_templates()
    ]
