from datetime import datetime, timezone
from typing import Any, Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def normalize_gid(value: Any) -> Optional[str]:
    """
    Reduce a Shopify GID (gid://shopify/InventoryItem/123) or a raw numeric id to the bare id string.
    """
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if "/" in text:
        text = text.rstrip("/").split("/")[-1]
    return text or None


def to_gid(resource: str, value: str) -> str:
    """Build a Shopify GID from a bare id. GIDs pass through unchanged."""
    if str(value).startswith("gid://"):
        return str(value)
    return f"gid://shopify/{resource}/{value}"
