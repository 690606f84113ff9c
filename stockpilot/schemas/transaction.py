from datetime import datetime
from typing import Optional

from pydantic import Field

from stockpilot.core.constants import TransactionType
from stockpilot.schemas.base import ApiModel


class TransactionCreate(ApiModel):
    product_id: int
    type: TransactionType
    quantity: int = Field(gt=0)
    amount: float = Field(ge=0)
    notes: str = ""


class TransactionRead(ApiModel):
    id: int
    product_id: int
    type: TransactionType
    quantity: int
    amount: float
    date: datetime
    notes: str
    product_name: Optional[str] = None
