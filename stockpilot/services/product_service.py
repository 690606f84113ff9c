from typing import Optional

from stockpilot.core.constants import STOCK_STATUS_IN, STOCK_STATUS_LOW, STOCK_STATUS_OUT
from stockpilot.core.dates import ensure_utc
from stockpilot.models.product import Product
from stockpilot.models.supplier import Supplier
from stockpilot.models.transaction import Transaction
from stockpilot.schemas.product import ProductRead
from stockpilot.schemas.transaction import TransactionRead


def stock_status(product: Product) -> str:
    if product.quantity == 0:
        return STOCK_STATUS_OUT
    if product.quantity <= product.reorder_level:
        return STOCK_STATUS_LOW
    return STOCK_STATUS_IN


def suggested_amount(product: Product, quantity: int) -> float:
    """Price times quantity, the amount pre-filled when recording a transaction."""
    return round(float(product.price) * int(quantity), 2)


def product_to_read(product: Product, supplier: Optional[Supplier] = None) -> ProductRead:
    base = ProductRead.model_validate(product).model_dump()
    base["created_at"] = ensure_utc(product.created_at)
    base["stock_status"] = stock_status(product)
    base["supplier_name"] = supplier.name if supplier is not None else None
    return ProductRead(**base)


def transaction_to_read(transaction: Transaction, product_name: Optional[str] = None) -> TransactionRead:
    base = TransactionRead.model_validate(transaction).model_dump()
    base["date"] = ensure_utc(transaction.date)
    base["product_name"] = product_name
    return TransactionRead(**base)


__all__ = ["product_to_read", "stock_status", "suggested_amount", "transaction_to_read"]
