from typing import Optional

from pydantic import Field

from stockpilot.schemas.base import ApiModel, PartialUpdateModel


class SupplierCreate(ApiModel):
    name: str = Field(min_length=1)
    contact: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    lead_time_days: Optional[int] = Field(None, gt=0)


class SupplierUpdate(PartialUpdateModel):
    non_nullable = ("name", "contact", "email", "phone", "address")

    name: Optional[str] = Field(None, min_length=1)
    contact: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    lead_time_days: Optional[int] = Field(None, gt=0)


class SupplierRead(ApiModel):
    id: int
    name: str
    contact: str
    email: str
    phone: str
    address: str
    lead_time_days: Optional[int] = None
    product_count: int = 0
