from proposal_crm.schemas.activities import ActivityRead, CommentCreate
from proposal_crm.schemas.financials import ProposalFinancials, TaxLine
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
from proposal_crm.schemas.payment_terms import (
    DueSpecIn,
    PaymentRecord,
    PaymentStatusRead,
    PaymentTemplateRead,
    PaymentTermCreate,
    PaymentTermRead,
    PaymentTermUpdate,
    TemplateApply,
)
from proposal_crm.schemas.products import ProductCreate, ProductRead
from proposal_crm.schemas.proposals import (
    ProposalCreate,
    ProposalDetail,
    ProposalRead,
    ProposalUpdate,
)

__all__ = [
    "ActivityRead",
    "CommentCreate",
    "ProposalFinancials",
    "TaxLine",
    "CustomTaxCreate",
    "CustomTaxRead",
    "CustomTaxUpdate",
    "EngineeringCreate",
    "EngineeringRead",
    "EngineeringUpdate",
    "ExpenseCreate",
    "ExpenseRead",
    "ExpenseUpdate",
    "LineItemCreate",
    "LineItemRead",
    "LineItemUpdate",
    "DueSpecIn",
    "PaymentRecord",
    "PaymentStatusRead",
    "PaymentTemplateRead",
    "PaymentTermCreate",
    "PaymentTermRead",
    "PaymentTermUpdate",
    "TemplateApply",
    "ProductCreate",
    "ProductRead",
    "ProposalCreate",
    "ProposalDetail",
    "ProposalRead",
    "ProposalUpdate",
]
