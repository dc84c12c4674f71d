import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum as PyEnum

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    JSON,
    Integer,
    Numeric,
    String,
    Text,
    event,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from proposal_crm.database import Base

MONEY = Numeric(14, 2)
RATE = Numeric(9, 4)
QUANTITY = Numeric(12, 3)


class ProposalStatus(PyEnum):
    draft = "Draft"
    pending = "Pending"
    sent = "Sent"
    won = "Won"
    lost = "Lost"
    expired = "Expired"


class PaymentStatus(PyEnum):
    pending = "Pending"
    paid = "Paid"


class ActivityKind(PyEnum):
    created = "Created"
    updated = "Updated"
    status_changed = "StatusChanged"
    item_added = "ItemAdded"
    item_removed = "ItemRemoved"
    payment_received = "PaymentReceived"
    payment_reverted = "PaymentReverted"
    payment_terms_template_applied = "PaymentTermsTemplateApplied"
    comment_added = "CommentAdded"


class Product(Base):
    __tablename__ = "products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    category: Mapped[str | None] = mapped_column(String(128), index=True)
    list_price: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    # Acquisition cost for the proposal owner.
    partner_price: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Proposal(Base):
    __tablename__ = "proposals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    proposal_uuid: Mapped[str] = mapped_column(
        String(36), unique=True, default=lambda: str(uuid.uuid4()), index=True
    )
    number: Mapped[str | None] = mapped_column(String(64), index=True)
    customer_name: Mapped[str | None] = mapped_column(String(255), index=True)
    status: Mapped[ProposalStatus] = mapped_column(
        Enum(ProposalStatus, native_enum=False),
        default=ProposalStatus.draft,
        nullable=False,
        index=True,
    )
    notes: Mapped[str | None] = mapped_column(Text)
    # Cached; always equals the sum of the four subtotals after recalculation.
    total_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    invoice_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Proposal-level payment conditions shown alongside the schedule.
    payment_terms_text: Mapped[str | None] = mapped_column(String(255), default="30 days net")
    deposit_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    deposit_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    deposit_percentage: Mapped[Decimal] = mapped_column(RATE, nullable=False, default=Decimal("0"))
    accepted_payment_methods: Mapped[list[str] | None] = mapped_column(
        JSON, nullable=True, default=lambda: ["Bank Transfer"]
    )
    late_penalty: Mapped[str | None] = mapped_column(Text)
    invoice_schedule: Mapped[str | None] = mapped_column(Text)
    custom_terms: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=datetime.utcnow, nullable=False
    )

    items = relationship(
        "LineItem", back_populates="proposal", cascade="all, delete-orphan", order_by="LineItem.id"
    )
    engineering = relationship(
        "EngineeringEntry",
        back_populates="proposal",
        cascade="all, delete-orphan",
        order_by="EngineeringEntry.id",
    )
    expenses = relationship(
        "ExpenseEntry",
        back_populates="proposal",
        cascade="all, delete-orphan",
        order_by="ExpenseEntry.id",
    )
    taxes = relationship(
        "CustomTax", back_populates="proposal", cascade="all, delete-orphan", order_by="CustomTax.id"
    )
    payment_terms = relationship(
        "PaymentTerm",
        back_populates="proposal",
        cascade="all, delete-orphan",
        order_by="PaymentTerm.id",
    )
    activities = relationship(
        "Activity",
        back_populates="proposal",
        cascade="all, delete-orphan",
        order_by="Activity.id.desc()",
    )


class LineItem(Base):
    __tablename__ = "proposal_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    proposal_id: Mapped[int] = mapped_column(
        ForeignKey("proposals.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id: Mapped[int | None] = mapped_column(ForeignKey("products.id"), nullable=True)
    quantity: Mapped[Decimal] = mapped_column(QUANTITY, nullable=False, default=Decimal("1"))
    discount: Mapped[Decimal] = mapped_column(RATE, nullable=False, default=Decimal("0"))
    multiplier: Mapped[Decimal] = mapped_column(RATE, nullable=False, default=Decimal("1"))
    unit_price: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    # Recomputed from unit_price * quantity on every save.
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    apply_custom_tax: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    custom_description: Mapped[str | None] = mapped_column(Text)

    proposal = relationship("Proposal", back_populates="items")
    product = relationship("Product", lazy="joined")


class EngineeringEntry(Base):
    __tablename__ = "proposal_engineering"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    proposal_id: Mapped[int] = mapped_column(
        ForeignKey("proposals.id", ondelete="CASCADE"), nullable=False, index=True
    )
    description: Mapped[str | None] = mapped_column(String(255))
    days: Mapped[Decimal] = mapped_column(QUANTITY, nullable=False, default=Decimal("0"))
    rate: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))

    proposal = relationship("Proposal", back_populates="engineering")


class ExpenseEntry(Base):
    __tablename__ = "proposal_expenses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    proposal_id: Mapped[int] = mapped_column(
        ForeignKey("proposals.id", ondelete="CASCADE"), nullable=False, index=True
    )
    description: Mapped[str | None] = mapped_column(String(255))
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))

    proposal = relationship("Proposal", back_populates="expenses")


class CustomTax(Base):
    __tablename__ = "proposal_custom_taxes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    proposal_id: Mapped[int] = mapped_column(
        ForeignKey("proposals.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    rate: Mapped[Decimal] = mapped_column(RATE, nullable=False, default=Decimal("0"))
    # Cached for display; base is partner cost of taxable items.
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))

    proposal = relationship("Proposal", back_populates="taxes")


class PaymentTerm(Base):
    __tablename__ = "payment_terms"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    proposal_id: Mapped[int] = mapped_column(
        ForeignKey("proposals.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str | None] = mapped_column(String(255))
    sequence_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    percentage: Mapped[Decimal] = mapped_column(RATE, nullable=False, default=Decimal("0"))
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))

    # Flat storage of the due spec: exactly one of these is set.
    due_condition: Mapped[str | None] = mapped_column(String(255), nullable=True)
    due_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus, native_enum=False), default=PaymentStatus.pending, nullable=False
    )
    payment_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    payment_method: Mapped[str | None] = mapped_column(String(64), nullable=True)
    payment_reference: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=datetime.utcnow, nullable=False
    )

    proposal = relationship("Proposal", back_populates="payment_terms")

    def _due_fields_set(self) -> int:
        return sum(
            [
                bool((self.due_condition or "").strip()),
                bool(self.due_days),
                self.due_date is not None,
            ]
        )

    def _validate_invariants(self) -> None:
        if self._due_fields_set() != 1:
            raise ValueError(
                "PaymentTerm requires exactly one of due_condition, due_days or due_date"
            )


@event.listens_for(PaymentTerm, "before_insert")
def _payment_term_before_insert(_mapper, _connection, target: PaymentTerm):
    target._validate_invariants()


@event.listens_for(PaymentTerm, "before_update")
def _payment_term_before_update(_mapper, _connection, target: PaymentTerm):
    target._validate_invariants()


class Activity(Base):
    __tablename__ = "activities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    proposal_id: Mapped[int] = mapped_column(
        ForeignKey("proposals.id", ondelete="CASCADE"), nullable=False, index=True
    )
    kind: Mapped[ActivityKind] = mapped_column(
        Enum(ActivityKind, native_enum=False), nullable=False, index=True
    )
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    details: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=datetime.utcnow, nullable=False
    )

    proposal = relationship("Proposal", back_populates="activities")
