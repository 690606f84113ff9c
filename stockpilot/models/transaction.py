from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Float, Index, Integer, String, Text

from stockpilot.database.base import Base


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True)

    # Weak reference: deleting a product leaves its transactions in place.
    product_id = Column(Integer, nullable=False)

    type = Column(String(16), nullable=False)
    quantity = Column(Integer, nullable=False)
    amount = Column(Float, nullable=False, default=0)
    date = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    notes = Column(Text, nullable=False, default="")

    __table_args__ = (
        Index("idx_transactions_product_date", "product_id", "date"),
    )


__all__ = ["Transaction"]
