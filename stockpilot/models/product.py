from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Float, Index, Integer, String

from stockpilot.database.base import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)

    name = Column(String, nullable=False)
    category = Column(String, nullable=False, default="")

    quantity = Column(Integer, nullable=False, default=0)
    price = Column(Float, nullable=False, default=0)
    reorder_level = Column(Integer, nullable=False, default=0)

    # Weak reference: suppliers may be deleted out from under a product.
    supplier_id = Column(Integer, nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("idx_products_supplier", "supplier_id"),
        Index("idx_products_name", "name"),
    )


__all__ = ["Product"]
