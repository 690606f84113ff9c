from stockpilot.services.dashboard_service import build_dashboard_summary
from stockpilot.services.inventory_store import InventoryStore
from stockpilot.services.reorder_service import generate_reorder_suggestion
from stockpilot.services.seed_service import seed_demo_data

__all__ = [
    "InventoryStore",
    "build_dashboard_summary",
    "generate_reorder_suggestion",
    "seed_demo_data",
]
