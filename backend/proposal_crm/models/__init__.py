from proposal_crm.models.domain import (
    Activity,
    ActivityKind,
    CustomTax,
    EngineeringEntry,
    ExpenseEntry,
    LineItem,
    PaymentStatus,
    PaymentTerm,
    Product,
    Proposal,
    ProposalStatus,
)

__all__ = [
    "Activity",
    "ActivityKind",
    "CustomTax",
    "EngineeringEntry",
    "ExpenseEntry",
    "LineItem",
    "PaymentStatus",
    "PaymentTerm",
    "Product",
    "Proposal",
    "ProposalStatus",
]
