from .client import ShopifyGraphQLClient

__all__ = ["ShopifyGraphQLClient"]
