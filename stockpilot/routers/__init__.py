from stockpilot.routers.dashboard import router as dashboard_router
from stockpilot.routers.health import router as health_router
from stockpilot.routers.products import router as products_router
from stockpilot.routers.reorder import router as reorder_router
from stockpilot.routers.suppliers import router as suppliers_router
from stockpilot.routers.transactions import router as transactions_router

__all__ = [
    "dashboard_router",
    "health_router",
    "products_router",
    "reorder_router",
    "suppliers_router",
    "transactions_router",
]
