import datetime as dt
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from proposal_crm.models import PaymentStatus
from proposal_crm.services.due_dates import (
    DueCondition,
    DueDays,
    DueOn,
    DueSpec,
    describe_due,
)
from proposal_crm.services.payment_schedule import (
    PAYMENT_METHODS,
    PaymentScheduleManager,
    describe_term,
    normalize_payment_method,
)


class DueSpecIn(BaseModel):
    """Exactly one of ``condition``, ``days`` or ``date``."""

    condition: Optional[str] = Field(None, max_length=255)
    days: Optional[int] = Field(None, gt=0)
    date: Optional[dt.date] = None

    @model_validator(mode="after")
    def _exactly_one(self):
        given = [
            bool((self.condition or "").strip()),
            self.days is not None,
            self.date is not None,
        ]
        if sum(given) != 1:
            raise ValueError("Provide exactly one of condition, days or date")
        return self

    def to_spec(self) -> DueSpec:
        if self.date is not None:
            return DueOn(self.date)
        if self.days is not None:
            return DueDays(self.days)
        return DueCondition(self.condition.strip())


class PaymentTermCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    percentage: float = Field(..., ge=0, le=100)
    due: DueSpecIn
    description: Optional[str] = Field(None, max_length=255)
    sequence_number: Optional[int] = Field(None, ge=1)


class PaymentTermUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=128)
    percentage: Optional[float] = Field(None, ge=0, le=100)
    due: Optional[DueSpecIn] = None
    description: Optional[str] = Field(None, max_length=255)
    sequence_number: Optional[int] = Field(None, ge=1)


class PaymentTermRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    sequence_number: Optional[int] = None
    percentage: float
    amount: float
    due_condition: Optional[str] = None
    due_days: Optional[int] = None
    due_date: Optional[dt.date] = None
    status: PaymentStatus
    payment_date: Optional[dt.date] = None
    payment_method: Optional[str] = None
    payment_reference: Optional[str] = None

    due_display: str = ""
    display_description: str = ""
    resolved_due_date: Optional[dt.date] = None
    is_overdue: bool = False

    @classmethod
    def from_term(cls, term, proposal, manager: PaymentScheduleManager) -> "PaymentTermRead":
        out = cls.model_validate(term)
        out.due_display = describe_due(term)
        out.display_description = describe_term(term)
        out.resolved_due_date = manager.due_date_of(term, proposal)
        out.is_overdue = manager.is_overdue(term, proposal)
        return out


class PaymentRecord(BaseModel):
    payment_date: Optional[dt.date] = None
    method: str = PAYMENT_METHODS[0]
    reference: Optional[str] = Field(None, max_length=128)

    @field_validator("method")
    @classmethod
    def validate_method(cls, v: str) -> str:
        return normalize_payment_method(v)


class TemplateApply(BaseModel):
    template: str = Field(..., min_length=1)


class TemplateLineRead(BaseModel):
    name: str
    percentage: float
    due_display: str
    description: Optional[str] = None


class PaymentTemplateRead(BaseModel):
    name: str
    description: str
    total_percentage: float
    lines: List[TemplateLineRead] = Field(default_factory=list)


class PercentageCheckRead(BaseModel):
    total: float
    difference: float
    is_valid: bool


class PaymentStatusRead(BaseModel):
    total_amount: float
    paid_amount: float
    due_amount: float
    progress: float
    has_overdue: bool
    is_fully_paid: bool
    status: str
    percentage: PercentageCheckRead
