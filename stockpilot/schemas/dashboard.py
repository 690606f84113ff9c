from typing import List

from stockpilot.schemas.base import ApiModel
from stockpilot.schemas.product import ProductRead
from stockpilot.schemas.transaction import TransactionRead


class DashboardSummary(ApiModel):
    total_products: int
    total_suppliers: int
    low_stock_count: int
    total_revenue: float
    total_purchases: float
    net_profit: float
    low_stock_products: List[ProductRead]
    recent_transactions: List[TransactionRead]
