from fastapi import APIRouter, Depends

from stockpilot.dependencies import get_store
from stockpilot.schemas.dashboard import DashboardSummary
from stockpilot.services.dashboard_service import build_dashboard_summary
from stockpilot.services.inventory_store import InventoryStore

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get("/summary", response_model=DashboardSummary)
def dashboard_summary(store: InventoryStore = Depends(get_store)):
    return build_dashboard_summary(store)


__all__ = ["router"]
