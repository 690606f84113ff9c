import logging
from datetime import datetime
from typing import Iterable, Optional, cast

from pydantic import BaseModel
from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stockpilot.core.constants import TransactionType
from stockpilot.core.dates import utc_now
from stockpilot.models.product import Product
from stockpilot.models.supplier import Supplier
from stockpilot.models.transaction import Transaction
from stockpilot.services.transaction_effects import apply_transaction_effect

logger = logging.getLogger(__name__)

_PRODUCT_FIELDS = ("name", "category", "quantity", "price", "reorder_level", "supplier_id")
_SUPPLIER_FIELDS = ("name", "contact", "email", "phone", "address", "lead_time_days")
_TRANSACTION_FIELDS = ("product_id", "type", "quantity", "amount", "notes")
_NULLABLE_FIELDS = ("supplier_id", "lead_time_days")


def _extract(data, fields, *, partial):
    if isinstance(data, BaseModel):
        data = data.model_dump(exclude_unset=partial)
    values = {key: value for key, value in dict(data).items() if key in fields}
    if partial:
        # A null on a required column leaves the stored value as is.
        values = {
            key: value
            for key, value in values.items()
            if value is not None or key in _NULLABLE_FIELDS
        }
    return values


def _contains(column, term):
    return func.lower(column).contains(term.lower(), autoescape=True)


def _normalize_search(search):
    if search is None:
        return None
    value = str(search).strip()
    return value or None


class InventoryStore:
    """Products, suppliers and transactions over an injected SQLAlchemy session.

    Every mutation commits before returning, so reads that follow see it.
    Missing ids never raise: updates return ``None``, deletes return ``False``
    and lookups return ``None``. References between records (product to
    supplier, transaction to product) are not enforced.
    """

    def __init__(self, db: Session):
        self.db = db

    def _commit(self):
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

    # ------------------------------
    # Products
    # ------------------------------
    def add_product(self, data) -> Product:
        values = _extract(data, _PRODUCT_FIELDS, partial=False)
        product = Product(**values, created_at=utc_now())
        self.db.add(product)
        self._commit()
        logger.info("Added product %s (%s)", product.id, product.name, extra={"product_id": product.id})
        return product

    def update_product(self, product_id: int, partial) -> Optional[Product]:
        product = self.get_product_by_id(product_id)
        if product is None:
            return None
        for key, value in _extract(partial, _PRODUCT_FIELDS, partial=True).items():
            setattr(product, key, value)
        self._commit()
        return product

    def delete_product(self, product_id: int) -> bool:
        product = self.get_product_by_id(product_id)
        if product is None:
            return False
        self.db.delete(product)
        self._commit()
        logger.info("Deleted product %s", product_id, extra={"product_id": product_id})
        return True

    def get_product_by_id(self, product_id: int) -> Optional[Product]:
        return self.db.get(Product, product_id)

    def list_products(self, search: Optional[str] = None) -> list[Product]:
        stmt = select(Product).order_by(Product.id)
        term = _normalize_search(search)
        if term:
            stmt = stmt.where(or_(_contains(Product.name, term), _contains(Product.category, term)))
        return cast(list[Product], list(self.db.execute(stmt).scalars().all()))

    def get_low_stock_products(self) -> list[Product]:
        stmt = (
            select(Product)
            .where(Product.quantity <= Product.reorder_level)
            .order_by(Product.id)
        )
        return cast(list[Product], list(self.db.execute(stmt).scalars().all()))

    def count_products(self) -> int:
        return self.db.execute(select(func.count(Product.id))).scalar_one()

    def get_product_names(self, product_ids: Iterable[int]) -> dict[int, str]:
        ids = {product_id for product_id in product_ids if product_id is not None}
        if not ids:
            return {}
        rows = self.db.execute(select(Product.id, Product.name).where(Product.id.in_(ids))).all()
        return {row.id: row.name for row in rows}

    # ------------------------------
    # Suppliers
    # ------------------------------
    def add_supplier(self, data) -> Supplier:
        supplier = Supplier(**_extract(data, _SUPPLIER_FIELDS, partial=False))
        self.db.add(supplier)
        self._commit()
        logger.info("Added supplier %s (%s)", supplier.id, supplier.name, extra={"supplier_id": supplier.id})
        return supplier

    def update_supplier(self, supplier_id: int, partial) -> Optional[Supplier]:
        supplier = self.get_supplier_by_id(supplier_id)
        if supplier is None:
            return None
        for key, value in _extract(partial, _SUPPLIER_FIELDS, partial=True).items():
            setattr(supplier, key, value)
        self._commit()
        return supplier

    def delete_supplier(self, supplier_id: int) -> bool:
        # Referencing products are the caller's concern; see ensure_supplier_deletable.
        supplier = self.get_supplier_by_id(supplier_id)
        if supplier is None:
            return False
        self.db.delete(supplier)
        self._commit()
        logger.info("Deleted supplier %s", supplier_id, extra={"supplier_id": supplier_id})
        return True

    def get_supplier_by_id(self, supplier_id: Optional[int]) -> Optional[Supplier]:
        if supplier_id is None:
            return None
        return self.db.get(Supplier, supplier_id)

    def list_suppliers(self, search: Optional[str] = None) -> list[Supplier]:
        stmt = select(Supplier).order_by(Supplier.id)
        term = _normalize_search(search)
        if term:
            stmt = stmt.where(or_(_contains(Supplier.name, term), _contains(Supplier.contact, term)))
        return cast(list[Supplier], list(self.db.execute(stmt).scalars().all()))

    def count_suppliers(self) -> int:
        return self.db.execute(select(func.count(Supplier.id))).scalar_one()

    def products_for_supplier(self, supplier_id: int) -> list[Product]:
        stmt = select(Product).where(Product.supplier_id == supplier_id).order_by(Product.id)
        return cast(list[Product], list(self.db.execute(stmt).scalars().all()))

    def count_products_for_supplier(self, supplier_id: int) -> int:
        stmt = select(func.count(Product.id)).where(Product.supplier_id == supplier_id)
        return self.db.execute(stmt).scalar_one()

    def supplier_product_counts(self) -> dict[int, int]:
        rows = self.db.execute(
            select(Product.supplier_id, func.count(Product.id))
            .where(Product.supplier_id.is_not(None))
            .group_by(Product.supplier_id)
        ).all()
        return {supplier_id: count for supplier_id, count in rows}

    # ------------------------------
    # Transactions
    # ------------------------------
    def add_transaction(self, data) -> Transaction:
        """Record a sale or purchase and adjust stock in one commit."""
        values = _extract(data, _TRANSACTION_FIELDS, partial=False)
        values["type"] = TransactionType(values["type"]).value
        transaction = Transaction(**values, date=utc_now())
        try:
            self.db.add(transaction)
            self.db.flush()
            apply_transaction_effect(self.db, transaction)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        logger.info(
            "Recorded %s of %s units for product %s",
            transaction.type,
            transaction.quantity,
            transaction.product_id,
            extra={"transaction_id": transaction.id, "product_id": transaction.product_id},
        )
        return transaction

    def get_transaction_by_id(self, transaction_id: int) -> Optional[Transaction]:
        return self.db.get(Transaction, transaction_id)

    def list_transactions(
        self,
        search: Optional[str] = None,
        transaction_type: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[Transaction]:
        stmt = select(Transaction).order_by(Transaction.date.desc(), Transaction.id.desc())
        term = _normalize_search(search)
        if term:
            stmt = stmt.outerjoin(Product, Product.id == Transaction.product_id).where(
                or_(_contains(Product.name, term), _contains(Transaction.notes, term))
            )
        if transaction_type and transaction_type != "all":
            stmt = stmt.where(Transaction.type == TransactionType(transaction_type).value)
        if limit is not None:
            stmt = stmt.limit(limit)
        return cast(list[Transaction], list(self.db.execute(stmt).scalars().all()))

    def transactions_for_product(
        self,
        product_id: int,
        *,
        since: Optional[datetime] = None,
        transaction_type: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[Transaction]:
        stmt = (
            select(Transaction)
            .where(Transaction.product_id == product_id)
            .order_by(Transaction.date.desc(), Transaction.id.desc())
        )
        if since is not None:
            stmt = stmt.where(Transaction.date >= since)
        if transaction_type is not None:
            stmt = stmt.where(Transaction.type == TransactionType(transaction_type).value)
        if limit is not None:
            stmt = stmt.limit(limit)
        return cast(list[Transaction], list(self.db.execute(stmt).scalars().all()))

    def transaction_totals(self) -> dict[str, float]:
        rows = self.db.execute(
            select(Transaction.type, func.coalesce(func.sum(Transaction.amount), 0.0)).group_by(
                Transaction.type
            )
        ).all()
        totals = {member.value: 0.0 for member in TransactionType}
        for transaction_type, total in rows:
            totals[transaction_type] = float(total)
        return totals


__all__ = ["InventoryStore"]
