from typing import List, Optional

from stocksync.schemas.base import BaseSchema


class RowResultRead(BaseSchema):
    product_id: str
    outcome: str
    old_stock: Optional[int] = None
    new_stock: Optional[int] = None
    error: Optional[str] = None


class SweepReportRead(BaseSchema):
    sync_run_id: str
    source: str
    started_at: str
    finished_at: Optional[str] = None
    total: int
    updated: int
    unchanged: int
    skipped: int
    failed: int
    superseded: int
    results: List[RowResultRead]
