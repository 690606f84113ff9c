from stockpilot.core.errors import SupplierInUseError
from stockpilot.models.supplier import Supplier
from stockpilot.schemas.supplier import SupplierRead
from stockpilot.services.inventory_store import InventoryStore


def ensure_supplier_deletable(store: InventoryStore, supplier_id: int) -> None:
    """Refuse deletion while any product still points at the supplier."""
    product_count = store.count_products_for_supplier(supplier_id)
    if product_count > 0:
        raise SupplierInUseError(supplier_id, product_count)


def supplier_to_read(supplier: Supplier, product_count: int = 0) -> SupplierRead:
    base = SupplierRead.model_validate(supplier).model_dump()
    base["product_count"] = product_count
    return SupplierRead(**base)


__all__ = ["ensure_supplier_deletable", "supplier_to_read"]
