from fastapi import APIRouter

from proposal_crm.api.routes import (
    health,
    line_items,
    payment_terms,
    products,
    proposals,
)

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(products.router)
api_router.include_router(proposals.router)
api_router.include_router(line_items.router)
api_router.include_router(payment_terms.router)
api_router.include_router(payment_terms.templates_router)
