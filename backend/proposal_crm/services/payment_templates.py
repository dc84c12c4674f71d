from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from proposal_crm.services.due_dates import DueCondition, DueDays, DueSpec


@dataclass(frozen=True)
class TemplateLine:
    name: str
    percentage: Decimal
    due: DueSpec
    description: Optional[str] = None


@dataclass(frozen=True)
class PaymentTemplate:
    name: str
    description: str
    lines: Tuple[TemplateLine, ...]

    @property
    def total_percentage(self) -> Decimal:
        return sum((line.percentage for line in self.lines), Decimal("0"))


def _line(name: str, pct: int, due: DueSpec, description: str) -> TemplateLine:
    return TemplateLine(name=name, percentage=Decimal(pct), due=due, description=description)


UPON_SIGNING = DueCondition("Upon signing")

TEMPLATES: Tuple[PaymentTemplate, ...] = (
    PaymentTemplate(
        name="50/50 Split",
        description="50% upfront, 50% upon completion",
        lines=(
            _line("Initial Payment", 50, UPON_SIGNING, "50% pre-payment"),
            _line("Final Payment", 50, DueDays(30), "50% upon project completion"),
        ),
    ),
    PaymentTemplate(
        name="30/70 Split",
        description="30% upfront, 70% upon completion",
        lines=(
            _line("Deposit", 30, UPON_SIGNING, "30% pre-payment"),
            _line("Final Payment", 70, DueDays(30), "70% upon project completion"),
        ),
    ),
    PaymentTemplate(
        name="Progressive",
        description="Three-stage payment plan",
        lines=(
            _line("Deposit", 20, UPON_SIGNING, "20% pre-payment"),
            _line("Progress Payment", 30, DueCondition("Upon delivery"), "30% after delivery"),
            _line("Final Payment", 50, DueDays(30), "50% upon project completion"),
        ),
    ),
    PaymentTemplate(
        name="Milestone-Based",
        description="Payments tied to project milestones",
        lines=(
            _line("Project Start", 25, UPON_SIGNING, "25% at project start"),
            _line(
                "Design Approval",
                25,
                DueCondition("Upon design approval"),
                "25% after design approval",
            ),
            _line(
                "Implementation",
                25,
                DueCondition("Upon implementation"),
                "25% after implementation",
            ),
            _line(
                "Final Delivery",
                25,
                DueCondition("Upon final delivery"),
                "25% upon final delivery",
            ),
        ),
    ),
    PaymentTemplate(
        name="Monthly Installments",
        description="Equal monthly payments",
        lines=(
            _line("First Month", 25, DueCondition("First installment"), "25% first installment"),
            _line("Second Month", 25, DueDays(30), "25% second installment"),
            _line("Third Month", 25, DueDays(60), "25% third installment"),
            _line("Final Month", 25, DueDays(90), "25% final installment"),
        ),
    ),
)

_BY_NAME: Dict[str, PaymentTemplate] = {t.name.lower(): t for t in TEMPLATES}


def list_templates() -> List[PaymentTemplate]:
    return list(TEMPLATES)


def get_template(name: str) -> PaymentTemplate:
    key = (name or "").strip().lower()
    if key not in _BY_NAME:
        raise KeyError(f"Unknown payment template: {name}")
    return _BY_NAME[key]
