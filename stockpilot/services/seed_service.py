import logging
from datetime import datetime, timezone

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from stockpilot.models.product import Product
from stockpilot.models.supplier import Supplier
from stockpilot.models.transaction import Transaction

logger = logging.getLogger(__name__)


def _utc(year, month, day):
    return datetime(year, month, day, tzinfo=timezone.utc)


def clear_inventory(db: Session) -> None:
    db.execute(delete(Transaction))
    db.execute(delete(Product))
    db.execute(delete(Supplier))
    db.commit()


def seed_demo_data(db: Session) -> bool:
    """Load the demo catalogue into an empty database. Returns False if data exists.

    Transactions are inserted as history, so product quantities are taken as-is
    rather than replayed through the stock adjustment.
    """
    if db.execute(select(Product.id).limit(1)).first():
        logger.info("Seed skipped: products already exist.")
        return False

    suppliers = [
        Supplier(
            name="Tech Solutions Inc.",
            contact="John Smith",
            email="john@techsolutions.com",
            phone="+1-555-0123",
            address="123 Tech Street, Silicon Valley, CA",
            lead_time_days=7,
        ),
        Supplier(
            name="Global Supplies Co.",
            contact="Sarah Johnson",
            email="sarah@globalsupplies.com",
            phone="+1-555-0456",
            address="456 Supply Ave, New York, NY",
            lead_time_days=14,
        ),
    ]
    db.add_all(suppliers)
    db.flush()

    products = [
        Product(
            name="Wireless Headphones",
            category="Electronics",
            quantity=25,
            price=99.99,
            reorder_level=10,
            supplier_id=suppliers[0].id,
            created_at=_utc(2024, 1, 15),
        ),
        Product(
            name="Coffee Beans - Premium",
            category="Food & Beverage",
            quantity=5,
            price=24.99,
            reorder_level=15,
            supplier_id=suppliers[1].id,
            created_at=_utc(2024, 1, 20),
        ),
        Product(
            name="Office Chair",
            category="Furniture",
            quantity=12,
            price=249.99,
            reorder_level=5,
            supplier_id=suppliers[0].id,
            created_at=_utc(2024, 1, 25),
        ),
    ]
    db.add_all(products)
    db.flush()

    db.add_all(
        [
            Transaction(
                product_id=products[0].id,
                type="sale",
                quantity=3,
                amount=299.97,
                date=_utc(2024, 6, 25),
                notes="Walk-in customer purchase",
            ),
            Transaction(
                product_id=products[1].id,
                type="purchase",
                quantity=20,
                amount=499.80,
                date=_utc(2024, 6, 24),
                notes="Weekly inventory restock",
            ),
            Transaction(
                product_id=products[2].id,
                type="sale",
                quantity=1,
                amount=249.99,
                date=_utc(2024, 6, 23),
                notes="Online order fulfillment",
            ),
        ]
    )
    db.commit()
    logger.info("Seeded %s suppliers and %s products.", len(suppliers), len(products))
    return True


__all__ = ["clear_inventory", "seed_demo_data"]
