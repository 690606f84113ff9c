import logging
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from stockpilot.core.constants import TransactionType
from stockpilot.models.product import Product
from stockpilot.models.transaction import Transaction

logger = logging.getLogger(__name__)


def quantity_delta(transaction_type, quantity: int) -> int:
    """Signed stock change for a transaction: sales remove units, purchases add them."""
    if TransactionType(transaction_type) is TransactionType.SALE:
        return -int(quantity)
    return int(quantity)


def apply_transaction_effect(db: Session, transaction: Transaction) -> Optional[Product]:
    """Adjust the referenced product's quantity inside the caller's DB transaction.

    The adjustment is a single ``quantity = quantity + delta`` UPDATE so concurrent
    writers on the same product serialize in the database instead of racing on a
    read-modify-write. Stock is not clamped at zero. When the product no longer
    exists nothing is adjusted and ``None`` is returned; the caller still keeps the
    transaction row.
    """
    delta = quantity_delta(transaction.type, transaction.quantity)
    result = db.execute(
        update(Product)
        .where(Product.id == transaction.product_id)
        .values(quantity=Product.quantity + delta)
        .execution_options(synchronize_session=False)
    )
    if not result.rowcount:
        logger.info(
            "Transaction %s references missing product %s; stock left unchanged.",
            transaction.id,
            transaction.product_id,
            extra={"transaction_id": transaction.id, "product_id": transaction.product_id},
        )
        return None

    return db.get(Product, transaction.product_id, populate_existing=True)


__all__ = ["apply_transaction_effect", "quantity_delta"]
