from abc import ABC, abstractmethod

from stocksync.integrations.events import AdjustmentResult


class InventoryPlatform(ABC):
    """
    The external platform that owns the authoritative quantity.

    Implementations raise ExternalAPIError (or a subclass) for transport and
    protocol failures. A rejected adjustment is reported through
    AdjustmentResult.success rather than raised.
    """

    name: str = "external"

    @abstractmethod
    async def adjust_available(
        self,
        item_ref: str,
        location_ref: str,
        delta: int,
        reason: str,
    ) -> AdjustmentResult:
        """Apply a signed delta to the available quantity at a location"""
        pass

    @abstractmethod
    async def get_available(self, item_ref: str, location_ref: str) -> int:
        """Current authoritative available quantity at a location"""
        pass
