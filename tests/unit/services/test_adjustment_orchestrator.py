from sqlalchemy import select

from stocksync.models import SyncLogEntry
from stocksync.services.adjustment_orchestrator import AdjustmentOrchestrator, AdjustmentRequest
from stocksync.services.stock_ledger import StockLedger


async def log_entries(db_session):
    result = await db_session.execute(select(SyncLogEntry).order_by(SyncLogEntry.id))
    return list(result.scalars().all())


async def three_linked_products(create_inventory, mock_platform):
    for index, product_id in enumerate(["P1", "P2", "P3"], start=1):
        await create_inventory(product_id, stock=10, item_ref=f"X{index}", location_ref="L1")
        mock_platform.set_level(f"X{index}", "L1", 10)


async def test_deduct_sends_negative_deltas(db_session, settings, create_inventory, mock_platform):
    await three_linked_products(create_inventory, mock_platform)
    orchestrator = AdjustmentOrchestrator(db_session, mock_platform, settings)

    result = await orchestrator.deduct(
        [AdjustmentRequest("P1", 3), AdjustmentRequest("P2", 1)],
        reference_id="INV-100",
        created_by="billing",
    )

    assert result.all_succeeded
    assert [(r.product_id, r.success, r.new_quantity) for r in result.results] == [("P1", True, 7), ("P2", True, 9)]
    assert sorted((c["item_ref"], c["delta"], c["reason"]) for c in mock_platform.adjust_calls) == [
        ("X1", -3, "correction"),
        ("X2", -1, "correction"),
    ]


async def test_deduct_does_not_write_the_ledger(db_session, settings, create_inventory, mock_platform):
    await three_linked_products(create_inventory, mock_platform)

    await AdjustmentOrchestrator(db_session, mock_platform, settings).deduct([AdjustmentRequest("P1", 3)], "INV-1")

    assert (await StockLedger(db_session, settings).get("P1")).stock == 10


async def test_deduct_audit_entries(db_session, settings, create_inventory, mock_platform):
    await three_linked_products(create_inventory, mock_platform)

    await AdjustmentOrchestrator(db_session, mock_platform, settings).deduct(
        [AdjustmentRequest("P1", 3)], reference_id="INV-1", created_by="billing"
    )

    entries = await log_entries(db_session)
    assert len(entries) == 1
    entry = entries[0]
    assert (entry.action, entry.source) == ("deduct", "invoice_created")
    assert entry.change == -3
    assert entry.stock_after == 10
    assert entry.external_confirmed is True
    assert (entry.reference_id, entry.reference_type, entry.created_by) == ("INV-1", "invoice", "billing")


async def test_partial_failure_is_isolated(db_session, settings, create_inventory, mock_platform):
    await three_linked_products(create_inventory, mock_platform)
    mock_platform.rejected_items.add("X2")

    result = await AdjustmentOrchestrator(db_session, mock_platform, settings).deduct(
        [AdjustmentRequest("P1", 1), AdjustmentRequest("P2", 1), AdjustmentRequest("P3", 1)], "INV-2"
    )

    assert [r.success for r in result.results] == [True, False, True]
    assert result.all_succeeded is False
    assert result.to_dict()["success"] is False
    assert "rejected" in result.results[1].error
    assert mock_platform.level("X1", "L1") == 9
    assert mock_platform.level("X3", "L1") == 9

    ledger = StockLedger(db_session, settings)
    assert "deduct failed" in (await ledger.get("P2")).sync_error
    assert (await ledger.get("P1")).sync_error is None

    confirmations = {e.product_id: e.external_confirmed for e in await log_entries(db_session)}
    assert confirmations == {"P1": True, "P2": False, "P3": True}


async def test_platform_exception_is_a_per_item_failure(db_session, settings, create_inventory, mock_platform):
    await three_linked_products(create_inventory, mock_platform)
    mock_platform.erroring_items.add("X1")

    result = await AdjustmentOrchestrator(db_session, mock_platform, settings).deduct(
        [AdjustmentRequest("P1", 1), AdjustmentRequest("P2", 1)]
    )

    assert [r.success for r in result.results] == [False, True]
    assert "unreachable" in result.results[0].error


async def test_timeout_on_one_item_does_not_block_the_rest(db_session, settings, create_inventory, mock_platform):
    await three_linked_products(create_inventory, mock_platform)
    mock_platform.hanging_items.add("X2")

    result = await AdjustmentOrchestrator(db_session, mock_platform, settings).deduct(
        [AdjustmentRequest("P1", 1), AdjustmentRequest("P2", 1), AdjustmentRequest("P3", 1)]
    )

    assert [r.success for r in result.results] == [True, False, True]
    assert "Timed out" in result.results[1].error


async def test_unlinked_and_unknown_products_fail_per_item(db_session, settings, create_inventory, mock_platform):
    await three_linked_products(create_inventory, mock_platform)
    await create_inventory("P4", item_ref=None, location_ref=None, sync_enabled=False)
    await create_inventory("P5", item_ref="X5", location_ref="L1", sync_enabled=False)

    result = await AdjustmentOrchestrator(db_session, mock_platform, settings).deduct(
        [
            AdjustmentRequest("P1", 1),
            AdjustmentRequest("P4", 1),
            AdjustmentRequest("ghost", 1),
            AdjustmentRequest("P5", 1),
            AdjustmentRequest("P3", 0),
        ]
    )

    assert [r.product_id for r in result.results] == ["P1", "P4", "ghost", "P5", "P3"]
    assert [r.success for r in result.results] == [True, False, False, False, False]
    assert "not linked" in result.results[1].error
    assert "no inventory record" in result.results[2].error
    assert "disabled" in result.results[3].error
    assert "positive" in result.results[4].error
    assert [c["item_ref"] for c in mock_platform.adjust_calls] == ["X1"]

    ledger = StockLedger(db_session, settings)
    assert "not linked" in (await ledger.get("P4")).sync_error


async def test_restore_sends_positive_deltas_with_restock_reason(db_session, settings, create_inventory, mock_platform):
    await three_linked_products(create_inventory, mock_platform)

    result = await AdjustmentOrchestrator(db_session, mock_platform, settings).restore(
        [AdjustmentRequest("P1", 2), AdjustmentRequest("P2", 1, reason="received", reference_id="INV-9")],
        reference_id="INV-8",
    )

    assert result.all_succeeded
    calls = {c["item_ref"]: (c["delta"], c["reason"]) for c in mock_platform.adjust_calls}
    assert calls == {"X1": (2, "restock"), "X2": (1, "received")}

    entries = {e.product_id: e for e in await log_entries(db_session)}
    assert entries["P1"].action == "restore"
    assert entries["P1"].source == "invoice_voided"
    assert entries["P1"].change == 2
    assert entries["P1"].reference_id == "INV-8"
    assert entries["P2"].reference_id == "INV-9"


async def test_check_availability(db_session, settings, create_inventory, mock_platform):
    await create_inventory("P1", stock=10, item_ref="X1")
    mock_platform.set_level("X1", "L1", 4)
    await create_inventory("P2", stock=2, item_ref="X2", sync_enabled=False)
    await create_inventory("P3", stock=8, item_ref="X3")
    mock_platform.erroring_items.add("X3")
    await create_inventory("P4", item_ref=None, location_ref=None, sync_enabled=False)

    items = await AdjustmentOrchestrator(db_session, mock_platform, settings).check_availability([
        {"product_id": "P1", "requested_quantity": 3},
        {"product_id": "P2", "requested_quantity": 3},
        {"product_id": "P3", "requested_quantity": 1},
        {"product_id": "P4", "requested_quantity": 1},
        {"product_id": "ghost", "requested_quantity": 1},
    ])

    by_id = {item.product_id: item for item in items}
    # Live platform value wins over the ledger
    assert (by_id["P1"].available, by_id["P1"].sufficient) == (4, True)
    assert (by_id["P2"].available, by_id["P2"].sufficient) == (2, False)
    assert by_id["P3"].available == 8
    assert by_id["P3"].sufficient is False
    assert "query failed" in by_id["P3"].error
    assert "not linked" in by_id["P4"].error
    assert "no inventory record" in by_id["ghost"].error
    assert [item.product_id for item in items] == ["P1", "P2", "P3", "P4", "ghost"]
    assert "error" not in by_id["P1"].to_dict()


async def test_check_availability_unexpected_error_falls_back_to_ledger(db_session, settings, create_inventory, mock_platform, mocker):
    await create_inventory("P1", stock=5, item_ref="X1")
    mock_platform.set_level("X1", "L1", 4)
    await create_inventory("P2", stock=3, item_ref="X2")
    live_lookup = mock_platform.get_available

    async def flaky_lookup(item_ref, location_ref):
        if item_ref == "X2":
            raise RuntimeError("connection reset")
        return await live_lookup(item_ref, location_ref)

    mocker.patch.object(mock_platform, "get_available", side_effect=flaky_lookup)

    items = await AdjustmentOrchestrator(db_session, mock_platform, settings).check_availability([
        {"product_id": "P1", "requested_quantity": 1},
        {"product_id": "P2", "requested_quantity": 1},
    ])

    by_id = {item.product_id: item for item in items}
    assert (by_id["P1"].available, by_id["P1"].sufficient) == (4, True)
    assert by_id["P1"].error is None
    assert by_id["P2"].available == 3
    assert by_id["P2"].sufficient is False
    assert by_id["P2"].error == "Live quantity query failed: connection reset"
