from datetime import datetime
from typing import List, Literal

from stockpilot.core.constants import RiskLevel, TransactionType
from stockpilot.schemas.base import ApiModel


class ReorderSuggestionRequest(ApiModel):
    product_id: int


class HistoryEntry(ApiModel):
    date: str
    quantity: int
    type: TransactionType


class ProductContext(ApiModel):
    id: int
    name: str
    category: str
    current_stock: int
    reorder_level: int
    avg_monthly_sales: float
    seasonal_trend: str
    supplier_lead_time: int
    unit_cost: float
    recent_transactions: List[HistoryEntry] = []


class ReorderSuggestion(ApiModel):
    recommended_quantity: int
    reasoning: str
    risk_level: RiskLevel
    next_review_date: str
    cost_impact: str
    stockout_risk: str
    alternative_strategy: str


class ReorderSuggestionResponse(ApiModel):
    success: Literal[True] = True
    suggestion: ReorderSuggestion
    product_info: ProductContext
    analysis_timestamp: datetime
    source: Literal["model", "fallback"]


class ReorderFailureResponse(ApiModel):
    success: Literal[False] = False
    error: str
    timestamp: datetime
