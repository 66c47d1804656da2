from .inventory import ProductInventory
from .webhook import InboundEvent
from .sync_log import SyncLogEntry

# This ensures all models are registered with SQLAlchemy
__all__ = [
    'ProductInventory',
    'InboundEvent',
    'SyncLogEntry',
]
