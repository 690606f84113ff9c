from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from stockpilot.core.errors import SupplierInUseError
from stockpilot.dependencies import get_store
from stockpilot.schemas.product import ProductRead
from stockpilot.schemas.supplier import SupplierCreate, SupplierRead, SupplierUpdate
from stockpilot.services.inventory_store import InventoryStore
from stockpilot.services.product_service import product_to_read
from stockpilot.services.supplier_service import ensure_supplier_deletable, supplier_to_read

router = APIRouter(prefix="/suppliers", tags=["Suppliers"])


def _require_supplier(store: InventoryStore, supplier_id: int):
    supplier = store.get_supplier_by_id(supplier_id)
    if supplier is None:
        raise HTTPException(status_code=404, detail="Supplier not found.")
    return supplier


@router.get("", response_model=List[SupplierRead])
def list_suppliers(
    search: Optional[str] = Query(None, description="Match on name or contact"),
    store: InventoryStore = Depends(get_store),
):
    counts = store.supplier_product_counts()
    return [
        supplier_to_read(supplier, counts.get(supplier.id, 0))
        for supplier in store.list_suppliers(search)
    ]


@router.post("", response_model=SupplierRead, status_code=201)
def create_supplier(payload: SupplierCreate, store: InventoryStore = Depends(get_store)):
    return supplier_to_read(store.add_supplier(payload))


@router.get("/{supplier_id}", response_model=SupplierRead)
def get_supplier(supplier_id: int, store: InventoryStore = Depends(get_store)):
    supplier = _require_supplier(store, supplier_id)
    return supplier_to_read(supplier, store.count_products_for_supplier(supplier.id))


@router.get("/{supplier_id}/products", response_model=List[ProductRead])
def supplier_products(supplier_id: int, store: InventoryStore = Depends(get_store)):
    supplier = _require_supplier(store, supplier_id)
    return [product_to_read(product, supplier) for product in store.products_for_supplier(supplier.id)]


@router.patch("/{supplier_id}", response_model=SupplierRead)
def update_supplier(
    supplier_id: int,
    payload: SupplierUpdate,
    store: InventoryStore = Depends(get_store),
):
    supplier = store.update_supplier(supplier_id, payload)
    if supplier is None:
        raise HTTPException(status_code=404, detail="Supplier not found.")
    return supplier_to_read(supplier, store.count_products_for_supplier(supplier.id))


@router.delete("/{supplier_id}", status_code=204)
def delete_supplier(supplier_id: int, store: InventoryStore = Depends(get_store)):
    _require_supplier(store, supplier_id)
    try:
        ensure_supplier_deletable(store, supplier_id)
    except SupplierInUseError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    store.delete_supplier(supplier_id)
    return Response(status_code=204)


__all__ = ["router"]
