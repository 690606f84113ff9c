from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from stockpilot.dependencies import get_store
from stockpilot.schemas.transaction import TransactionCreate, TransactionRead
from stockpilot.services.inventory_store import InventoryStore
from stockpilot.services.product_service import transaction_to_read

router = APIRouter(prefix="/transactions", tags=["Transactions"])


@router.get("", response_model=List[TransactionRead])
def list_transactions(
    search: Optional[str] = Query(None, description="Match on product name or notes"),
    transaction_type: Literal["all", "sale", "purchase"] = Query("all", alias="type"),
    limit: Optional[int] = Query(None, ge=1, le=1000),
    store: InventoryStore = Depends(get_store),
):
    items = store.list_transactions(search=search, transaction_type=transaction_type, limit=limit)
    names = store.get_product_names(item.product_id for item in items)
    return [transaction_to_read(item, names.get(item.product_id)) for item in items]


@router.post("", response_model=TransactionRead, status_code=201)
def create_transaction(payload: TransactionCreate, store: InventoryStore = Depends(get_store)):
    transaction = store.add_transaction(payload)
    product = store.get_product_by_id(transaction.product_id)
    return transaction_to_read(transaction, product.name if product is not None else None)


@router.get("/{transaction_id}", response_model=TransactionRead)
def get_transaction(transaction_id: int, store: InventoryStore = Depends(get_store)):
    transaction = store.get_transaction_by_id(transaction_id)
    if transaction is None:
        raise HTTPException(status_code=404, detail="Transaction not found.")
    product = store.get_product_by_id(transaction.product_id)
    return transaction_to_read(transaction, product.name if product is not None else None)


__all__ = ["router"]
