import importlib

from stockpilot.models.product import Product
from stockpilot.models.supplier import Supplier
from stockpilot.models.transaction import Transaction


def import_all_models() -> None:
    for module_name in (
        "stockpilot.models.product",
        "stockpilot.models.supplier",
        "stockpilot.models.transaction",
    ):
        importlib.import_module(module_name)


__all__ = [
    "Product",
    "Supplier",
    "Transaction",
    "import_all_models",
]
