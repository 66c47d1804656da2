import pytest
from sqlalchemy import select, update

from stocksync.core.enums import RowOutcome, SyncSource
from stocksync.core.exceptions import InventoryNotFoundError, ProductNotLinkedError
from stocksync.models import ProductInventory, SyncLogEntry
from stocksync.services.reconciliation_service import ReconciliationSweep
from stocksync.services.stock_ledger import StockLedger


async def log_entries(db_session):
    result = await db_session.execute(select(SyncLogEntry).order_by(SyncLogEntry.id))
    return list(result.scalars().all())


async def test_sweep_converges_on_platform_values(db_session, settings, create_inventory, mock_platform):
    await create_inventory("P1", stock=10, item_ref="X1")
    await create_inventory("P2", stock=5, item_ref="X2")
    await create_inventory("P3", stock=3, item_ref="X3", sync_enabled=False)
    mock_platform.set_level("X1", "L1", 8)
    mock_platform.set_level("X2", "L1", 5)
    mock_platform.set_level("X3", "L1", 0)

    report = await ReconciliationSweep(db_session, mock_platform, settings).run()

    assert report.summary == {"total": 2, "updated": 1, "unchanged": 1, "skipped": 0, "failed": 0, "superseded": 0}
    ledger = StockLedger(db_session, settings)
    for product_id, item in [("P1", "X1"), ("P2", "X2")]:
        assert (await ledger.get(product_id)).stock == mock_platform.level(item, "L1")
    assert (await ledger.get("P3")).stock == 3

    entries = await log_entries(db_session)
    assert len(entries) == 1
    assert (entries[0].action, entries[0].source) == ("reconcile", "scheduled_reconcile")
    assert (entries[0].change, entries[0].stock_after) == (-2, 8)
    assert entries[0].reference_id == report.sync_run_id
    assert entries[0].reference_type == "sync_run"


async def test_one_failure_does_not_abort_the_sweep(db_session, settings, create_inventory, mock_platform):
    await create_inventory("P1", stock=10, item_ref="X1")
    await create_inventory("P2", stock=10, item_ref="X2")
    await create_inventory("P3", stock=10, item_ref="X3")
    mock_platform.set_level("X1", "L1", 1)
    mock_platform.erroring_items.add("X2")
    mock_platform.set_level("X3", "L1", 3)

    report = await ReconciliationSweep(db_session, mock_platform, settings).run()

    assert report.summary["updated"] == 2
    assert report.summary["failed"] == 1
    failed = [row for row in report.results if row.outcome == RowOutcome.FAILED]
    assert failed[0].product_id == "P2"

    ledger = StockLedger(db_session, settings)
    p2 = await ledger.get("P2")
    assert p2.stock == 10
    assert "reconcile failed" in p2.sync_error
    assert (await ledger.get("P3")).stock == 3


async def test_successful_reconcile_clears_previous_error(db_session, settings, create_inventory, mock_platform):
    await create_inventory("P1", stock=4, item_ref="X1")
    mock_platform.set_level("X1", "L1", 4)
    ledger = StockLedger(db_session, settings)
    await ledger.mark_sync_error("P1", "deduct failed: timeout")

    await ReconciliationSweep(db_session, mock_platform, settings).run()

    row = await ledger.get("P1")
    assert row.sync_error is None
    assert row.last_synced_at is not None


async def set_stock(db_session, product_id, stock):
    await db_session.execute(
        update(ProductInventory).where(ProductInventory.product_id == product_id).values(stock=stock)
    )
    await db_session.commit()


async def test_concurrent_inbound_update_is_retried_against_platform(db_session, settings, create_inventory, mock_platform):
    await create_inventory("P1", stock=10, item_ref="X1")
    mock_platform.set_level("X1", "L1", 6)
    original_get = mock_platform.get_available
    calls = []

    async def get_available_while_webhook_lands(item_ref, location_ref):
        calls.append(item_ref)
        value = await original_get(item_ref, location_ref)
        if len(calls) == 1:
            # An inbound update commits between the sweep's read and its write
            await set_stock(db_session, "P1", 4)
        return value

    mock_platform.get_available = get_available_while_webhook_lands

    report = await ReconciliationSweep(db_session, mock_platform, settings).run()

    assert len(calls) == 2
    assert report.summary["updated"] == 1
    assert report.summary["superseded"] == 0
    assert (await StockLedger(db_session, settings).get("P1")).stock == 6
    entries = await log_entries(db_session)
    assert [(e.change, e.stock_after) for e in entries] == [(2, 6)]


async def test_row_changed_earlier_in_sweep_still_converges(db_session, settings, create_inventory, mock_platform):
    await create_inventory("P1", stock=3, item_ref="X1")
    await create_inventory("P2", stock=5, item_ref="X2")
    mock_platform.set_level("X1", "L1", 3)
    mock_platform.set_level("X2", "L1", 7)
    original_get = mock_platform.get_available

    async def get_available(item_ref, location_ref):
        if item_ref == "X1":
            # While P1 is reconciled: P2's webhook for 7 lands, then the
            # platform moves to 9 and that notification is lost
            await set_stock(db_session, "P2", 7)
            mock_platform.set_level("X2", "L1", 9)
        return await original_get(item_ref, location_ref)

    mock_platform.get_available = get_available

    report = await ReconciliationSweep(db_session, mock_platform, settings).run()

    assert report.summary["superseded"] == 0
    assert report.summary["unchanged"] == 1
    assert report.summary["updated"] == 1
    assert (await StockLedger(db_session, settings).get("P2")).stock == mock_platform.level("X2", "L1") == 9


async def test_superseded_only_after_retries_are_exhausted(db_session, settings, create_inventory, mock_platform):
    await create_inventory("P1", stock=10, item_ref="X1")
    mock_platform.set_level("X1", "L1", 50)
    original_get = mock_platform.get_available
    calls = []

    async def get_available_racing_every_time(item_ref, location_ref):
        calls.append(item_ref)
        value = await original_get(item_ref, location_ref)
        await set_stock(db_session, "P1", 10 + len(calls))
        return value

    mock_platform.get_available = get_available_racing_every_time

    report = await ReconciliationSweep(db_session, mock_platform, settings).run()

    assert len(calls) == settings.LEDGER_CAS_RETRIES
    assert report.summary["superseded"] == 1
    assert (await StockLedger(db_session, settings).get("P1")).stock == 10 + settings.LEDGER_CAS_RETRIES
    assert await log_entries(db_session) == []


async def test_row_disabled_mid_sweep_is_skipped(db_session, settings, create_inventory, mock_platform):
    await create_inventory("P1", stock=1, item_ref="X1")
    await create_inventory("P2", stock=1, item_ref="X2")
    mock_platform.set_level("X1", "L1", 1)
    mock_platform.set_level("X2", "L1", 8)
    original_get = mock_platform.get_available

    async def get_available(item_ref, location_ref):
        if item_ref == "X1":
            await StockLedger(db_session, settings).disable_sync("P2")
        return await original_get(item_ref, location_ref)

    mock_platform.get_available = get_available

    report = await ReconciliationSweep(db_session, mock_platform, settings).run()

    assert report.summary["skipped"] == 1
    assert (await StockLedger(db_session, settings).get("P2")).stock == 1


async def test_reconcile_single_product(db_session, settings, create_inventory, mock_platform):
    await create_inventory("P1", stock=10, item_ref="X1")
    mock_platform.set_level("X1", "L1", 12)

    result = await ReconciliationSweep(db_session, mock_platform, settings).reconcile_product("P1", created_by="ops")

    assert result.outcome == RowOutcome.UPDATED
    assert result.new_stock == 12
    entry = (await log_entries(db_session))[0]
    assert (entry.source, entry.created_by) == (SyncSource.MANUAL.value, "ops")


async def test_reconcile_single_product_requires_enabled_link(db_session, settings, create_inventory, mock_platform):
    await create_inventory("P1", item_ref=None, location_ref=None, sync_enabled=False)
    await create_inventory("P2", item_ref="X2", sync_enabled=False)
    sweep = ReconciliationSweep(db_session, mock_platform, settings)

    with pytest.raises(ProductNotLinkedError):
        await sweep.reconcile_product("P1")
    with pytest.raises(ProductNotLinkedError):
        await sweep.reconcile_product("P2")
    with pytest.raises(InventoryNotFoundError):
        await sweep.reconcile_product("ghost")


async def test_manual_sweep_report(db_session, settings, create_inventory, mock_platform):
    await create_inventory("P1", stock=1, item_ref="X1")
    mock_platform.set_level("X1", "L1", 2)

    report = await ReconciliationSweep(db_session, mock_platform, settings).run(source=SyncSource.MANUAL, created_by="manual")
    data = report.to_dict()

    assert data["source"] == "manual"
    assert data["total"] == 1
    assert data["updated"] == 1
    assert data["results"][0]["product_id"] == "P1"
    assert data["finished_at"] is not None
