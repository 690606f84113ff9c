from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from stockpilot.dependencies import get_store
from stockpilot.schemas.product import ProductCreate, ProductRead, ProductUpdate, SuggestedAmount
from stockpilot.schemas.transaction import TransactionRead
from stockpilot.services.inventory_store import InventoryStore
from stockpilot.services.product_service import (
    product_to_read,
    suggested_amount,
    transaction_to_read,
)

router = APIRouter(prefix="/products", tags=["Products"])


def _read(store: InventoryStore, product) -> ProductRead:
    return product_to_read(product, store.get_supplier_by_id(product.supplier_id))


def _require_product(store: InventoryStore, product_id: int):
    product = store.get_product_by_id(product_id)
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found.")
    return product


@router.get("", response_model=List[ProductRead])
def list_products(
    search: Optional[str] = Query(None, description="Match on name or category"),
    store: InventoryStore = Depends(get_store),
):
    return [_read(store, product) for product in store.list_products(search)]


@router.post("", response_model=ProductRead, status_code=201)
def create_product(payload: ProductCreate, store: InventoryStore = Depends(get_store)):
    return _read(store, store.add_product(payload))


@router.get("/low-stock", response_model=List[ProductRead])
def low_stock_products(store: InventoryStore = Depends(get_store)):
    return [_read(store, product) for product in store.get_low_stock_products()]


@router.get("/{product_id}", response_model=ProductRead)
def get_product(product_id: int, store: InventoryStore = Depends(get_store)):
    return _read(store, _require_product(store, product_id))


@router.patch("/{product_id}", response_model=ProductRead)
def update_product(
    product_id: int,
    payload: ProductUpdate,
    store: InventoryStore = Depends(get_store),
):
    product = store.update_product(product_id, payload)
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found.")
    return _read(store, product)


@router.delete("/{product_id}", status_code=204)
def delete_product(product_id: int, store: InventoryStore = Depends(get_store)):
    if not store.delete_product(product_id):
        raise HTTPException(status_code=404, detail="Product not found.")
    return Response(status_code=204)


@router.get("/{product_id}/suggested-amount", response_model=SuggestedAmount)
def product_suggested_amount(
    product_id: int,
    quantity: int = Query(..., gt=0),
    store: InventoryStore = Depends(get_store),
):
    product = _require_product(store, product_id)
    return SuggestedAmount(
        product_id=product.id,
        quantity=quantity,
        unit_price=product.price,
        amount=suggested_amount(product, quantity),
    )


@router.get("/{product_id}/transactions", response_model=List[TransactionRead])
def product_transactions(
    product_id: int,
    limit: Optional[int] = Query(None, ge=1, le=500),
    store: InventoryStore = Depends(get_store),
):
    product = _require_product(store, product_id)
    return [
        transaction_to_read(item, product.name)
        for item in store.transactions_for_product(product.id, limit=limit)
    ]


__all__ = ["router"]
