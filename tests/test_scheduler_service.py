from datetime import datetime, timedelta

from tally_sync.config import ScheduledTenant, SchedulerConfig
from tally_sync.services.amount_service import AmountRecalcService
from tally_sync.services.bulk_loader import BulkLoaderService
from tally_sync.services.repair_service import RelationshipRepairService
from tally_sync.services.scheduler_service import SchedulerService, is_sync_due
from tally_sync.services.sync_service import SyncService
from tally_sync.services.tally_service import TallyService
from tally_sync.services.xml_extractor import XMLExtractor


def _sync_service(db, transport):
    return SyncService(
        db=db,
        tally=TallyService(endpoint="http://tally.test:9000", transport=transport),
        extractor=XMLExtractor(),
        loader=BulkLoaderService(db),
        repairer=RelationshipRepairService(db, batch_size=100),
        recalculator=AmountRecalcService(db, batch_cap=100),
    )


def _scheduled(tenant, **overrides):
    fields = {
        "company_id": tenant.company_id,
        "division_id": tenant.division_id,
        "sync_frequency": "1hour",
        "mode": "full",
        "categories": ["groups", "ledgers"],
        **overrides,
    }
    return ScheduledTenant(**fields)


def test_sync_due_by_frequency():
    now = datetime(2024, 5, 1, 12, 0)

    assert is_sync_due(None, "1hour", now)
    assert not is_sync_due(now - timedelta(minutes=30), "1hour", now)
    assert is_sync_due(now - timedelta(minutes=60), "1hour", now)
    assert not is_sync_due(now - timedelta(days=6), "weekly", now)
    assert is_sync_due(now - timedelta(days=7), "weekly", now)
    assert not is_sync_due(None, "disabled", now)
    assert not is_sync_due(None, "fortnightly", now)


async def test_due_tenants_sync_once_per_frequency(db, tenant, other_tenant, tally_transport):
    settings = SchedulerConfig(enabled=True, tenants=[
        _scheduled(tenant),
        _scheduled(other_tenant, sync_frequency="disabled"),
    ])
    scheduler = SchedulerService(_sync_service(db, tally_transport), settings)
    now = datetime.now()

    results = await scheduler.run_due(now)

    assert [(r["company_id"], r["status"]) for r in results] == [(tenant.company_id, "completed")]
    assert await db.table("mst_ledger").tenant(tenant).count() == 3
    assert await db.table("mst_ledger").tenant(other_tenant).count() == 0

    assert await scheduler.run_due(now + timedelta(minutes=10)) == []
    assert len(await scheduler.run_due(now + timedelta(minutes=61))) == 1

    status = scheduler.get_status()
    assert status["tenants"][0]["last_status"] == "completed"
    assert status["tenants"][0]["last_sync_success"] is not None
    assert status["tenants"][1]["last_sync_attempt"] is None


async def test_last_attempt_is_seeded_from_history(db, tenant, tally_transport):
    service = _sync_service(db, tally_transport)
    await service.full_sync(tenant, ["groups"])
    scheduler = SchedulerService(service, SchedulerConfig(tenants=[_scheduled(tenant)]))

    assert await scheduler.run_due() == []


async def test_manual_trigger_ignores_frequency(db, tenant, other_tenant, tally_transport):
    settings = SchedulerConfig(tenants=[
        _scheduled(tenant, mode="incremental"),
        _scheduled(other_tenant),
    ])
    scheduler = SchedulerService(_sync_service(db, tally_transport), settings)
    now = datetime.now()
    await scheduler.run_due(now)

    results = await scheduler.run_due(now, only=tenant)

    assert len(results) == 1
    assert results[0]["division_id"] == tenant.division_id
    assert results[0]["status"] == "completed"


async def test_start_registers_the_due_check_job(db, tally_transport):
    scheduler = SchedulerService(_sync_service(db, tally_transport), SchedulerConfig(enabled=True, check_interval=5))

    scheduler.start()
    try:
        status = scheduler.get_status()
        assert status["is_running"]
        assert [job["id"] for job in status["jobs"]] == ["scheduled_sync"]
        assert status["jobs"][0]["next_run"] is not None
    finally:
        scheduler.stop()

    assert not scheduler.is_running
