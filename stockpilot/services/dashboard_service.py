from stockpilot.core.constants import RECENT_TRANSACTIONS_LIMIT, TransactionType
from stockpilot.schemas.dashboard import DashboardSummary
from stockpilot.services.inventory_store import InventoryStore
from stockpilot.services.product_service import product_to_read, transaction_to_read


def build_dashboard_summary(store: InventoryStore) -> DashboardSummary:
    low_stock = store.get_low_stock_products()
    totals = store.transaction_totals()
    revenue = round(totals[TransactionType.SALE.value], 2)
    purchases = round(totals[TransactionType.PURCHASE.value], 2)

    recent = store.list_transactions(limit=RECENT_TRANSACTIONS_LIMIT)
    names = store.get_product_names(item.product_id for item in recent)

    return DashboardSummary(
        total_products=store.count_products(),
        total_suppliers=store.count_suppliers(),
        low_stock_count=len(low_stock),
        total_revenue=revenue,
        total_purchases=purchases,
        net_profit=round(revenue - purchases, 2),
        low_stock_products=[
            product_to_read(product, store.get_supplier_by_id(product.supplier_id))
            for product in low_stock
        ],
        recent_transactions=[
            transaction_to_read(item, names.get(item.product_id)) for item in recent
        ],
    )


__all__ = ["build_dashboard_summary"]
