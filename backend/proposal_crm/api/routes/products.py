from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session

from proposal_crm import models
from proposal_crm.database import get_db
from proposal_crm.schemas.products import ProductCreate, ProductRead

router = APIRouter(prefix="/products", tags=["products"])


@router.get("", response_model=list[ProductRead])
def list_products(
    q: str | None = Query(None, min_length=1, max_length=120),
    category: str | None = Query(None, min_length=1, max_length=128),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
):
    query = db.query(models.Product)

    if category:
        query = query.filter(models.Product.category == category.strip())

    if q:
        q_like = f"%{q.strip()}%"
        query = query.filter(
            or_(models.Product.code.ilike(q_like), models.Product.name.ilike(q_like))
        )

    return query.order_by(models.Product.code.asc()).limit(limit).all()


@router.get("/{product_id}", response_model=ProductRead)
def get_product(product_id: int, db: Session = Depends(get_db)):
    product = db.get(models.Product, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@router.post("", response_model=ProductRead, status_code=201)
def create_product(payload: ProductCreate, db: Session = Depends(get_db)):
    code = payload.code.strip()
    if db.query(models.Product).filter(models.Product.code == code).first():
        raise HTTPException(status_code=400, detail="Product code already exists")

    product = models.Product(
        code=code,
        name=payload.name.strip(),
        description=(payload.description or "").strip() or None,
        category=(payload.category or "").strip() or None,
        list_price=payload.list_price,
        partner_price=payload.partner_price,
    )
    db.add(product)
    db.commit()
    db.refresh(product)
    return product
