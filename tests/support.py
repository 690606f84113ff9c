from stockpilot.database.base import Base
from stockpilot.database.engine import build_engine
from stockpilot.database.session import make_session_factory
from stockpilot.models import import_all_models
from stockpilot.services.inventory_store import InventoryStore


class InMemoryStoreMixin:
    """Gives each test a fresh in-memory SQLite database and an InventoryStore over it."""

    def setUp(self):
        super().setUp()
        import_all_models()
        self.engine = build_engine("sqlite:///:memory:")
        Base.metadata.create_all(bind=self.engine)
        self.db = make_session_factory(self.engine)()
        self.store = InventoryStore(self.db)

    def tearDown(self):
        self.db.close()
        self.engine.dispose()
        super().tearDown()

    def make_supplier(self, **overrides):
        values = {
            "name": "Tech Solutions Inc.",
            "contact": "John Smith",
            "email": "john@techsolutions.com",
            "phone": "+1-555-0123",
            "address": "123 Tech Street",
        }
        values.update(overrides)
        return self.store.add_supplier(values)

    def make_product(self, **overrides):
        values = {
            "name": "Wireless Headphones",
            "category": "Electronics",
            "quantity": 25,
            "price": 99.99,
            "reorder_level": 10,
            "supplier_id": None,
        }
        values.update(overrides)
        return self.store.add_product(values)
