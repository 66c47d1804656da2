class InventorySyncError(Exception):
    """Base exception for all inventory sync errors."""
    pass

class SignatureInvalidError(InventorySyncError):
    """Raised when an inbound event fails signature verification."""
    pass

class MalformedPayloadError(InventorySyncError):
    """Raised when an inbound event body cannot be parsed or validated."""
    pass

class InventoryNotFoundError(InventorySyncError):
    """Raised when a product has no ledger row."""
    pass

class ProductNotLinkedError(InventorySyncError):
    """Raised when a product is missing its external item or location reference."""
    pass

class NegativeStockAttemptError(InventorySyncError):
    """Raised when a mutation would leave stock below zero under the reject policy."""

    def __init__(self, product_id: str, attempted: int):
        self.product_id = product_id
        self.attempted = attempted
        super().__init__(f"Stock for product {product_id} cannot be set to {attempted}")

class StockConflictError(InventorySyncError):
    """Raised when a compare-and-swap ledger update keeps losing to concurrent writers."""
    pass

class ExternalAPIError(InventorySyncError):
    """Base exception for external platform API failures."""
    pass

class ShopifyAPIError(ExternalAPIError):
    """Raised when Shopify API calls fail or return user errors."""
    pass

class ShopifyGraphQLError(ShopifyAPIError):
    """Raised when a GraphQL response carries top-level errors."""

    def __init__(self, errors):
        self.errors = errors
        message = "GraphQL query failed with errors:\n"
        for error in errors:
            msg = error.get('message', 'Unknown error')
            path = error.get('path', [])
            message += f"- Message: {msg}, Path: {path}\n"
        super().__init__(message)
