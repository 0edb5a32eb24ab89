import httpx
import pytest

from tally_sync.models.sync import SyncSession
from tally_sync.services.amount_service import AmountRecalcService
from tally_sync.services.bulk_loader import BulkLoaderService
from tally_sync.services.database_service import DatabaseService
from tally_sync.services.repair_service import RelationshipRepairService
from tally_sync.services.sync_service import SyncService
from tally_sync.services.tally_service import TallyService
from tally_sync.services.xml_extractor import XMLExtractor

CATEGORIES = ["groups", "ledgers", "stockItems", "vouchers"]


def _sync_service(db, transport):
    return SyncService(
        db=db,
        tally=TallyService(endpoint="http://tally.test:9000", transport=transport),
        extractor=XMLExtractor(),
        loader=BulkLoaderService(db),
        repairer=RelationshipRepairService(db, batch_size=100),
        recalculator=AmountRecalcService(db, batch_cap=100),
    )


async def test_full_sync_loads_every_reachable_category(db, tenant, tally_responses, tally_transport):
    tally_responses["ListOfStockItems"] = httpx.ConnectError("connection refused")
    stages = []

    session = await _sync_service(db, tally_transport).full_sync(
        tenant, CATEGORIES, on_progress=lambda s: stages.append(s.progress.stage)
    )

    assert session.status == "partial"
    assert session.failed_tables == ["stockItems"]
    assert session.tables["ledgers"].status == "success"
    assert session.tables["ledgers"].fetched == 3
    assert session.tables["stockItems"].error
    assert session.completed_at is not None

    assert await db.table("mst_ledger").tenant(tenant).count() == 3
    assert await db.table("mst_group").tenant(tenant).count() == 3
    assert await db.table("trn_accounting").tenant(tenant).count() == 4

    voucher = await db.table("trn_voucher").tenant(tenant).eq("guid", "vg-1").fetch_one()
    assert voucher["total_amount"] == 500.0
    assert voucher["final_amount"] == 500.0
    payment = await db.table("trn_voucher").tenant(tenant).eq("guid", "vg-2").fetch_one()
    assert payment["total_amount"] == 1200.0

    assert session.amounts.vouchers_processed == 2
    assert session.repair is not None
    for stage in ("starting", "fetch", "extract", "load", "repair", "recalculate", "completed"):
        assert stage in stages
    assert stages[-1] == "completed"


async def test_full_sync_replaces_stale_rows_for_the_tenant_only(db, tenant, other_tenant, tally_responses,
                                                                 tally_transport):
    service = _sync_service(db, tally_transport)
    await service.full_sync(tenant, ["ledgers"])
    await service.full_sync(other_tenant, ["ledgers"])

    tally_responses["ListOfLedgers"] = (
        "<ENVELOPE><LEDGER><GUID>g-cash</GUID><NAME>Cash</NAME></LEDGER></ENVELOPE>"
    )
    session = await service.full_sync(tenant, ["ledgers"])

    assert session.status == "completed"
    rows = await db.table("mst_ledger").tenant(tenant).fetch()
    assert [r["guid"] for r in rows] == ["g-cash"]
    assert await db.table("mst_ledger").tenant(other_tenant).count() == 3


async def test_empty_category_keeps_existing_rows(db, tenant, tally_responses, tally_transport):
    service = _sync_service(db, tally_transport)
    await service.full_sync(tenant, ["groups"])

    tally_responses["ListOfGroups"] = "<ENVELOPE></ENVELOPE>"
    session = await service.full_sync(tenant, ["groups"])

    assert session.tables["groups"].status == "empty"
    assert session.status == "completed"
    assert await db.table("mst_group").tenant(tenant).count() == 3


async def test_incremental_sync_upserts(db, tenant, tally_responses, tally_transport):
    service = _sync_service(db, tally_transport)
    await service.full_sync(tenant, ["ledgers"])

    tally_responses["ListOfLedgers"] = (
        "<ENVELOPE><LEDGER><GUID>g-rent</GUID><NAME>Rent</NAME></LEDGER></ENVELOPE>"
    )
    session = await service.incremental_sync(tenant, "2024-04-01", "2024-04-30", ["ledgers"])

    assert session.status == "completed"
    assert session.tables["ledgers"].loads[0].operation == "upsert"
    assert await db.table("mst_ledger").tenant(tenant).count() == 4


async def test_all_categories_failing_fails_the_run(db, tenant, tally_responses, tally_transport):
    tally_responses["ListOfGroups"] = httpx.ConnectError("connection refused")
    tally_responses["ListOfLedgers"] = httpx.ConnectError("connection refused")

    session = await _sync_service(db, tally_transport).full_sync(tenant, ["groups", "ledgers"])

    assert session.status == "failed"
    assert session.error_message == "Every category failed"


async def test_second_run_for_same_tenant_is_rejected(db, tenant, other_tenant, tally_transport):
    service = _sync_service(db, tally_transport)

    async with service._locks.hold(tenant.key):
        assert service.is_running(tenant)
        rejected = await service.full_sync(tenant, ["groups"])
        allowed = await service.full_sync(other_tenant, ["groups"])

    assert rejected.status == "rejected"
    assert "already in progress" in rejected.error_message
    assert allowed.status == "completed"
    assert not service.is_running(tenant)


async def test_reserved_tenant_only_runs_its_own_session(db, tenant, tally_transport):
    service = _sync_service(db, tally_transport)
    mine = SyncSession(tenant=tenant, mode="full")

    assert service.try_reserve(tenant, mine.session_id)
    assert service.is_running(tenant)
    assert not service.try_reserve(tenant, "someone-else")

    intruder = await service.full_sync(tenant, ["groups"])
    assert intruder.status == "rejected"
    assert service.is_running(tenant)

    finished = await service.full_sync(tenant, ["groups"], session=mine)
    assert finished.status == "completed"
    assert not service.is_running(tenant)
    assert service._reservations == {}
    assert len(service._locks) == 0


async def test_tenant_locks_are_dropped_after_runs(db, tenant, other_tenant, tally_transport):
    service = _sync_service(db, tally_transport)

    await service.full_sync(tenant, ["groups"])
    await service.incremental_sync(other_tenant, categories=["groups"])

    assert len(service._locks) == 0


async def test_unreachable_database_fails_the_run(tmp_path, tenant, tally_transport):
    broken = DatabaseService(str(tmp_path))

    session = await _sync_service(broken, tally_transport).full_sync(tenant, ["groups"])

    assert session.status == "failed"
    assert session.error_message.startswith("Database unavailable")
    assert session.tables == {}


async def test_progress_callback_errors_do_not_stop_the_run(db, tenant, tally_transport):
    async def explode(session):
        raise RuntimeError("listener went away")

    session = await _sync_service(db, tally_transport).full_sync(tenant, ["groups"], on_progress=explode)

    assert session.status == "completed"


async def test_history_is_recorded(db, tenant, other_tenant, tally_transport):
    service = _sync_service(db, tally_transport)
    first = await service.full_sync(tenant, ["groups"])
    await service.full_sync(other_tenant, ["groups"])

    history = await service.get_sync_history(tenant)

    assert len(history) == 1
    assert history[0]["session_id"] == first.session_id
    assert history[0]["status"] == "completed"
    assert history[0]["summary"]["groups"]["fetched"] == 3
