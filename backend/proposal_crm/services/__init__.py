from proposal_crm.services import financial_engine, payment_templates
from proposal_crm.services.activity_log import log_activity
from proposal_crm.services.payment_schedule import PaymentScheduleManager, PaymentStateError
from proposal_crm.services.proposal_totals import lock_proposal, recalculate_proposal

__all__ = [
    "financial_engine",
    "payment_templates",
    "log_activity",
    "PaymentScheduleManager",
    "PaymentStateError",
    "lock_proposal",
    "recalculate_proposal",
]
