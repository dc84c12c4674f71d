from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from proposal_crm.models import ProposalStatus
from proposal_crm.schemas.line_items import (
    CustomTaxRead,
    EngineeringRead,
    ExpenseRead,
    LineItemRead,
)
from proposal_crm.schemas.payment_terms import PaymentTermRead
from proposal_crm.services.payment_schedule import normalize_payment_method


class ProposalCreate(BaseModel):
    number: Optional[str] = Field(None, max_length=64)
    customer_name: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = None
    invoice_date: Optional[date] = None


class ProposalUpdate(BaseModel):
    number: Optional[str] = Field(None, max_length=64)
    customer_name: Optional[str] = Field(None, max_length=255)
    status: Optional[ProposalStatus] = None
    notes: Optional[str] = None
    invoice_date: Optional[date] = None

    payment_terms_text: Optional[str] = Field(None, max_length=255)
    deposit_required: Optional[bool] = None
    deposit_amount: Optional[float] = Field(None, ge=0)
    deposit_percentage: Optional[float] = Field(None, ge=0, le=100)
    accepted_payment_methods: Optional[List[str]] = None
    late_penalty: Optional[str] = None
    invoice_schedule: Optional[str] = None
    custom_terms: Optional[str] = None

    @field_validator("accepted_payment_methods")
    @classmethod
    def validate_methods(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return v
        methods: List[str] = []
        for raw in v:
            method = normalize_payment_method(raw)
            if method not in methods:
                methods.append(method)
        return methods


class ProposalRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    proposal_uuid: str
    number: Optional[str] = None
    customer_name: Optional[str] = None
    status: ProposalStatus
    notes: Optional[str] = None
    total_amount: float
    sent_at: Optional[datetime] = None
    invoice_date: Optional[date] = None
    created_at: datetime


class ProposalDetail(ProposalRead):
    payment_terms_text: Optional[str] = None
    deposit_required: bool = False
    deposit_amount: float = 0.0
    deposit_percentage: float = 0.0
    # Deposit owed for the current total.
    deposit_due: float = 0.0
    accepted_payment_methods: List[str] = Field(default_factory=list)
    late_penalty: Optional[str] = None
    invoice_schedule: Optional[str] = None
    custom_terms: Optional[str] = None

    items: List[LineItemRead] = Field(default_factory=list)
    engineering: List[EngineeringRead] = Field(default_factory=list)
    expenses: List[ExpenseRead] = Field(default_factory=list)
    taxes: List[CustomTaxRead] = Field(default_factory=list)
    payment_terms: List[PaymentTermRead] = Field(default_factory=list)
