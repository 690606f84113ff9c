class ReorderSuggestionError(RuntimeError):
    """Base class for failures that abort a reorder suggestion request."""

    status_code = 500


class ConfigurationError(ReorderSuggestionError):
    status_code = 500


class ProductNotFoundError(ReorderSuggestionError):
    status_code = 404

    def __init__(self, product_id):
        super().__init__("Product {} not found".format(product_id))
        self.product_id = product_id


class UpstreamError(ReorderSuggestionError):
    status_code = 502

    def __init__(self, message, *, status=None, detail=None):
        super().__init__(message)
        self.status = status
        self.detail = detail


class UpstreamTimeoutError(UpstreamError):
    status_code = 504


class SupplierInUseError(RuntimeError):
    def __init__(self, supplier_id, product_count):
        super().__init__(
            "Cannot delete supplier. {} products are associated with this supplier.".format(
                product_count
            )
        )
        self.supplier_id = supplier_id
        self.product_count = product_count


__all__ = [
    "ConfigurationError",
    "ProductNotFoundError",
    "ReorderSuggestionError",
    "SupplierInUseError",
    "UpstreamError",
    "UpstreamTimeoutError",
]
