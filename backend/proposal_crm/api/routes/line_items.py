from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from proposal_crm import models
from proposal_crm.api.deps import get_payment_manager, get_proposal_for_update
from proposal_crm.database import get_db
from proposal_crm.schemas.line_items import (
    CustomTaxCreate,
    CustomTaxRead,
    CustomTaxUpdate,
    EngineeringCreate,
    EngineeringRead,
    EngineeringUpdate,
    ExpenseCreate,
    ExpenseRead,
    ExpenseUpdate,
    LineItemCreate,
    LineItemRead,
    LineItemUpdate,
)
from proposal_crm.services import activity_log
from proposal_crm.services import financial_engine as fe
from proposal_crm.services.payment_schedule import PaymentScheduleManager
from proposal_crm.services.proposal_totals import recalculate_proposal

router = APIRouter(prefix="/proposals/{proposal_id}", tags=["proposal-lines"])

MULTIPLIER_STEP = Decimal("0.0001")
# Largest value the Numeric(9, 4) multiplier column holds.
MULTIPLIER_MAX = Decimal("99999.9999")


def _child(collection, child_id: int, label: str):
    for row in collection:
        if row.id == child_id:
            return row
    raise HTTPException(status_code=404, detail=f"{label} not found")


def _commit(db: Session, proposal: models.Proposal, manager: PaymentScheduleManager) -> None:
    recalculate_proposal(db, proposal, manager=manager)
    db.commit()


def _stored_multiplier(value: Decimal) -> Decimal:
    return min(fe.to_decimal(value), MULTIPLIER_MAX).quantize(MULTIPLIER_STEP)


def _item_label(item: models.LineItem) -> str:
    if item.product is not None:
        return item.product.name
    return item.custom_description or "custom item"


# ---------------------------------------------------------------------------
# Line items
# ---------------------------------------------------------------------------


@router.post("/items", response_model=LineItemRead, status_code=201)
def add_line_item(
    proposal_id: int,
    payload: LineItemCreate,
    db: Session = Depends(get_db),
    manager: PaymentScheduleManager = Depends(get_payment_manager),
):
    proposal = get_proposal_for_update(proposal_id, db)

    product = None
    if payload.product_id is not None:
        product = db.get(models.Product, payload.product_id)
        if not product:
            raise HTTPException(status_code=400, detail="Product not found")
    elif not (payload.custom_description or "").strip():
        raise HTTPException(
            status_code=400, detail="A custom line item requires custom_description"
        )

    list_price = product.list_price if product is not None else fe.ZERO
    if payload.unit_price is None:
        unit_price = fe.unit_price_from_multiplier(
            list_price, payload.multiplier, payload.discount
        )
        multiplier = fe.to_decimal(payload.multiplier)
    else:
        unit_price = fe.to_decimal(payload.unit_price)
        multiplier = fe.derive_multiplier(list_price, payload.discount, unit_price)

    item = models.LineItem(
        product=product,
        quantity=fe.to_decimal(payload.quantity),
        discount=fe.to_decimal(payload.discount),
        multiplier=_stored_multiplier(multiplier),
        unit_price=fe.quantize_money(unit_price),
        apply_custom_tax=payload.apply_custom_tax,
        custom_description=(payload.custom_description or "").strip() or None,
    )
    proposal.items.append(item)
    _commit(db, proposal, manager)
    db.refresh(item)

    activity_log.log_item_added(db, proposal, "product", _item_label(item))
    return LineItemRead.from_item(item)


@router.patch("/items/{item_id}", response_model=LineItemRead)
def update_line_item(
    proposal_id: int,
    item_id: int,
    payload: LineItemUpdate,
    db: Session = Depends(get_db),
    manager: PaymentScheduleManager = Depends(get_payment_manager),
):
    proposal = get_proposal_for_update(proposal_id, db)
    item = _child(proposal.items, item_id, "Line item")

    if payload.quantity is not None:
        item.quantity = fe.to_decimal(payload.quantity)
    if payload.discount is not None:
        item.discount = fe.to_decimal(payload.discount)
    if payload.apply_custom_tax is not None:
        item.apply_custom_tax = payload.apply_custom_tax
    if payload.custom_description is not None:
        item.custom_description = payload.custom_description.strip() or None

    list_price = fe.list_price_of(item)
    if payload.unit_price is not None:
        item.unit_price = fe.quantize_money(payload.unit_price)
        item.multiplier = _stored_multiplier(
            fe.derive_multiplier(list_price, item.discount, item.unit_price)
        )
    elif payload.multiplier is not None or payload.discount is not None:
        if payload.multiplier is not None:
            item.multiplier = _stored_multiplier(payload.multiplier)
        if list_price > fe.ZERO:
            item.unit_price = fe.quantize_money(
                fe.unit_price_from_multiplier(list_price, item.multiplier, item.discount)
            )

    _commit(db, proposal, manager)
    db.refresh(item)
    activity_log.log_proposal_updated(db, proposal, f"line item {_item_label(item)}")
    return LineItemRead.from_item(item)


@router.delete("/items/{item_id}", status_code=204)
def delete_line_item(
    proposal_id: int,
    item_id: int,
    db: Session = Depends(get_db),
    manager: PaymentScheduleManager = Depends(get_payment_manager),
):
    proposal = get_proposal_for_update(proposal_id, db)
    item = _child(proposal.items, item_id, "Line item")
    label = _item_label(item)

    proposal.items.remove(item)
    _commit(db, proposal, manager)
    activity_log.log_item_removed(db, proposal, "product", label)


# ---------------------------------------------------------------------------
# Engineering
# ---------------------------------------------------------------------------


@router.post("/engineering", response_model=EngineeringRead, status_code=201)
def add_engineering(
    proposal_id: int,
    payload: EngineeringCreate,
    db: Session = Depends(get_db),
    manager: PaymentScheduleManager = Depends(get_payment_manager),
):
    proposal = get_proposal_for_update(proposal_id, db)
    entry = models.EngineeringEntry(
        description=(payload.description or "").strip() or None,
        days=fe.to_decimal(payload.days),
        rate=fe.quantize_money(payload.rate),
    )
    proposal.engineering.append(entry)
    _commit(db, proposal, manager)
    db.refresh(entry)

    activity_log.log_item_added(db, proposal, "engineering", entry.description or "engineering")
    return entry


@router.patch("/engineering/{entry_id}", response_model=EngineeringRead)
def update_engineering(
    proposal_id: int,
    entry_id: int,
    payload: EngineeringUpdate,
    db: Session = Depends(get_db),
    manager: PaymentScheduleManager = Depends(get_payment_manager),
):
    proposal = get_proposal_for_update(proposal_id, db)
    entry = _child(proposal.engineering, entry_id, "Engineering entry")

    if payload.description is not None:
        entry.description = payload.description.strip() or None
    if payload.days is not None:
        entry.days = fe.to_decimal(payload.days)
    if payload.rate is not None:
        entry.rate = fe.quantize_money(payload.rate)

    _commit(db, proposal, manager)
    db.refresh(entry)
    activity_log.log_proposal_updated(db, proposal, "engineering")
    return entry


@router.delete("/engineering/{entry_id}", status_code=204)
def delete_engineering(
    proposal_id: int,
    entry_id: int,
    db: Session = Depends(get_db),
    manager: PaymentScheduleManager = Depends(get_payment_manager),
):
    proposal = get_proposal_for_update(proposal_id, db)
    entry = _child(proposal.engineering, entry_id, "Engineering entry")
    label = entry.description or "engineering"

    proposal.engineering.remove(entry)
    _commit(db, proposal, manager)
    activity_log.log_item_removed(db, proposal, "engineering", label)


# ---------------------------------------------------------------------------
# Expenses
# ---------------------------------------------------------------------------


@router.post("/expenses", response_model=ExpenseRead, status_code=201)
def add_expense(
    proposal_id: int,
    payload: ExpenseCreate,
    db: Session = Depends(get_db),
    manager: PaymentScheduleManager = Depends(get_payment_manager),
):
    proposal = get_proposal_for_update(proposal_id, db)
    expense = models.ExpenseEntry(
        description=(payload.description or "").strip() or None,
        amount=fe.quantize_money(payload.amount),
    )
    proposal.expenses.append(expense)
    _commit(db, proposal, manager)
    db.refresh(expense)

    activity_log.log_item_added(db, proposal, "expense", expense.description or "expense")
    return expense


@router.patch("/expenses/{expense_id}", response_model=ExpenseRead)
def update_expense(
    proposal_id: int,
    expense_id: int,
    payload: ExpenseUpdate,
    db: Session = Depends(get_db),
    manager: PaymentScheduleManager = Depends(get_payment_manager),
):
    proposal = get_proposal_for_update(proposal_id, db)
    expense = _child(proposal.expenses, expense_id, "Expense")

    if payload.description is not None:
        expense.description = payload.description.strip() or None
    if payload.amount is not None:
        expense.amount = fe.quantize_money(payload.amount)

    _commit(db, proposal, manager)
    db.refresh(expense)
    activity_log.log_proposal_updated(db, proposal, "expenses")
    return expense


@router.delete("/expenses/{expense_id}", status_code=204)
def delete_expense(
    proposal_id: int,
    expense_id: int,
    db: Session = Depends(get_db),
    manager: PaymentScheduleManager = Depends(get_payment_manager),
):
    proposal = get_proposal_for_update(proposal_id, db)
    expense = _child(proposal.expenses, expense_id, "Expense")
    label = expense.description or "expense"

    proposal.expenses.remove(expense)
    _commit(db, proposal, manager)
    activity_log.log_item_removed(db, proposal, "expense", label)


# ---------------------------------------------------------------------------
# Custom taxes
# ---------------------------------------------------------------------------


@router.post("/taxes", response_model=CustomTaxRead, status_code=201)
def add_custom_tax(
    proposal_id: int,
    payload: CustomTaxCreate,
    db: Session = Depends(get_db),
    manager: PaymentScheduleManager = Depends(get_payment_manager),
):
    proposal = get_proposal_for_update(proposal_id, db)
    tax = models.CustomTax(name=payload.name.strip(), rate=fe.to_decimal(payload.rate))
    proposal.taxes.append(tax)
    _commit(db, proposal, manager)
    db.refresh(tax)

    activity_log.log_item_added(db, proposal, "tax", tax.name)
    return tax


@router.patch("/taxes/{tax_id}", response_model=CustomTaxRead)
def update_custom_tax(
    proposal_id: int,
    tax_id: int,
    payload: CustomTaxUpdate,
    db: Session = Depends(get_db),
    manager: PaymentScheduleManager = Depends(get_payment_manager),
):
    proposal = get_proposal_for_update(proposal_id, db)
    tax = _child(proposal.taxes, tax_id, "Custom tax")

    if payload.name is not None:
        tax.name = payload.name.strip()
    if payload.rate is not None:
        tax.rate = fe.to_decimal(payload.rate)

    _commit(db, proposal, manager)
    db.refresh(tax)
    activity_log.log_proposal_updated(db, proposal, f"tax {tax.name}")
    return tax


@router.delete("/taxes/{tax_id}", status_code=204)
def delete_custom_tax(
    proposal_id: int,
    tax_id: int,
    db: Session = Depends(get_db),
    manager: PaymentScheduleManager = Depends(get_payment_manager),
):
    proposal = get_proposal_for_update(proposal_id, db)
    tax = _child(proposal.taxes, tax_id, "Custom tax")
    label = tax.name

    proposal.taxes.remove(tax)
    _commit(db, proposal, manager)
    activity_log.log_item_removed(db, proposal, "tax", label)
