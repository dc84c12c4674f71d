from decimal import Decimal

import pytest

from proposal_crm.services.due_dates import DueCondition, DueDays
from proposal_crm.services.payment_templates import get_template, list_templates


def test_every_template_sums_to_one_hundred():
    for template in list_templates():
        assert template.total_percentage == Decimal("100"), template.name


def test_template_names():
    assert [t.name for t in list_templates()] == [
        "50/50 Split",
        "30/70 Split",
        "Progressive",
        "Milestone-Based",
        "Monthly Installments",
    ]


def test_progressive_lines():
    template = get_template("Progressive")

    assert [line.percentage for line in template.lines] == [20, 30, 50]
    assert template.lines[1].due == DueCondition("Upon delivery")
    assert template.lines[2].due == DueDays(30)


def test_monthly_installments_are_spaced_by_thirty_days():
    template = get_template("monthly installments")

    assert template.lines[0].due == DueCondition("First installment")
    assert [line.due for line in template.lines[1:]] == [DueDays(30), DueDays(60), DueDays(90)]


def test_unknown_template_raises_key_error():
    with pytest.raises(KeyError):
        get_template("90/10 Split")
