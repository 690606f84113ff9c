from datetime import datetime
from typing import Optional

from pydantic import Field

from stockpilot.schemas.base import ApiModel, PartialUpdateModel


class ProductCreate(ApiModel):
    name: str = Field(min_length=1)
    category: str = ""
    quantity: int = Field(0, ge=0)
    price: float = Field(0, ge=0)
    reorder_level: int = Field(0, ge=0)
    supplier_id: Optional[int] = None


class ProductUpdate(PartialUpdateModel):
    non_nullable = ("name", "category", "quantity", "price", "reorder_level")

    name: Optional[str] = Field(None, min_length=1)
    category: Optional[str] = None
    quantity: Optional[int] = Field(None, ge=0)
    price: Optional[float] = Field(None, ge=0)
    reorder_level: Optional[int] = Field(None, ge=0)
    supplier_id: Optional[int] = None


class ProductRead(ApiModel):
    id: int
    name: str
    category: str
    quantity: int
    price: float
    reorder_level: int
    supplier_id: Optional[int] = None
    created_at: datetime
    stock_status: Optional[str] = None
    supplier_name: Optional[str] = None


class SuggestedAmount(ApiModel):
    product_id: int
    quantity: int
    unit_price: float
    amount: float
