from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from proposal_crm.schemas.products import ProductRead
from proposal_crm.services import financial_engine as fe


class LineItemCreate(BaseModel):
    product_id: Optional[int] = None
    quantity: float = Field(1.0, ge=1)
    discount: float = Field(0.0, ge=0, le=50)
    multiplier: float = Field(1.0, gt=0, le=99999.9999)
    # When omitted the unit price is list price * multiplier * (1 - discount/100).
    unit_price: Optional[float] = Field(None, ge=0)
    apply_custom_tax: bool = False
    custom_description: Optional[str] = None


class LineItemUpdate(BaseModel):
    quantity: Optional[float] = Field(None, ge=1)
    discount: Optional[float] = Field(None, ge=0, le=50)
    multiplier: Optional[float] = Field(None, gt=0, le=99999.9999)
    unit_price: Optional[float] = Field(None, ge=0)
    apply_custom_tax: Optional[bool] = None
    custom_description: Optional[str] = None


class LineItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product: Optional[ProductRead] = None
    quantity: float
    discount: float
    multiplier: float
    unit_price: float
    amount: float
    apply_custom_tax: bool
    custom_description: Optional[str] = None
    profit: float = 0.0
    margin: float = 0.0

    @classmethod
    def from_item(cls, item) -> "LineItemRead":
        out = cls.model_validate(item)
        out.profit = float(fe.quantize_money(fe.line_item_profit(item)))
        out.margin = float(fe.line_item_margin(item))
        return out


class EngineeringCreate(BaseModel):
    description: Optional[str] = Field(None, max_length=255)
    days: float = Field(0.0, ge=0)
    rate: float = Field(0.0, ge=0)


class EngineeringUpdate(BaseModel):
    description: Optional[str] = Field(None, max_length=255)
    days: Optional[float] = Field(None, ge=0)
    rate: Optional[float] = Field(None, ge=0)


class EngineeringRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    description: Optional[str] = None
    days: float
    rate: float
    amount: float


class ExpenseCreate(BaseModel):
    description: Optional[str] = Field(None, max_length=255)
    amount: float = Field(0.0, ge=0)


class ExpenseUpdate(BaseModel):
    description: Optional[str] = Field(None, max_length=255)
    amount: Optional[float] = Field(None, ge=0)


class ExpenseRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    description: Optional[str] = None
    amount: float


class CustomTaxCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    rate: float = Field(..., ge=0)


class CustomTaxUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=128)
    rate: Optional[float] = Field(None, ge=0)


class CustomTaxRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    rate: float
    amount: float
