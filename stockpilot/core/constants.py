from enum import Enum


class TransactionType(str, Enum):
    SALE = "sale"
    PURCHASE = "purchase"


class RiskLevel(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


STOCK_STATUS_OUT = "Out of Stock"
STOCK_STATUS_LOW = "Low Stock"
STOCK_STATUS_IN = "In Stock"

RECENT_TRANSACTIONS_LIMIT = 5

# Model-suggested quantities are clamped into this range.
MIN_REORDER_QUANTITY = 5
MAX_REORDER_QUANTITY = 200

DAYS_PER_MONTH = 30
SAFETY_STOCK_RATIO = 0.5
NEXT_REVIEW_DAYS = 21
TREND_WINDOW_DAYS = 30
TREND_CHANGE_THRESHOLD = 0.2

GENERATION_CONFIG = {
    "temperature": 0.3,
    "topK": 32,
    "topP": 1.0,
    "maxOutputTokens": 1024,
}
