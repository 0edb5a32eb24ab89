import asyncio

import pytest

from tally_sync.services.bulk_loader import BulkLoaderService


LEDGER_ROWS = [
    {"guid": "g-cash", "name": "Cash", "parent": "Cash-in-Hand", "opening_balance": 1500.0},
    {"guid": "g-bank", "name": "Bank", "parent": "Bank Accounts", "opening_balance": -2500.5},
    {"guid": "g-sales", "name": "Sales", "parent": "", "opening_balance": 0.0},
]


@pytest.fixture
def loader(db):
    return BulkLoaderService(db)


async def test_replace_writes_every_row(loader, db, tenant):
    result = await loader.load("mst_ledger", "replace", LEDGER_ROWS, tenant)

    assert result.success
    assert result.total == 3
    assert result.processed == 3
    assert result.failed == 0

    rows = await db.table("mst_ledger").tenant(tenant).order("name").fetch()
    assert [r["name"] for r in rows] == ["Bank", "Cash", "Sales"]
    assert rows[2]["parent"] == ""
    assert rows[0]["opening_balance"] == -2500.5


async def test_loads_are_isolated_per_tenant(loader, db, tenant, other_tenant):
    await loader.load("mst_ledger", "replace", LEDGER_ROWS, tenant)
    await loader.load("mst_ledger", "replace", LEDGER_ROWS[:1], other_tenant)

    assert await db.table("mst_ledger").tenant(tenant).count() == 3
    assert await db.table("mst_ledger").tenant(other_tenant).count() == 1


async def test_rows_are_restamped_with_caller_tenant(loader, db, tenant):
    rows = [dict(LEDGER_ROWS[0], company_id="someone-else", division_id="elsewhere")]

    await loader.load("mst_ledger", "upsert", rows, tenant)

    assert await db.table("mst_ledger").eq("company_id", "someone-else").count() == 0
    assert await db.table("mst_ledger").tenant(tenant).count() == 1


async def test_replace_drops_stale_rows(loader, db, tenant, other_tenant):
    await loader.load("mst_ledger", "replace", LEDGER_ROWS, tenant)
    await loader.load("mst_ledger", "replace", LEDGER_ROWS, other_tenant)

    result = await loader.load("mst_ledger", "replace", [LEDGER_ROWS[0]], tenant)

    assert result.deleted == 3
    rows = await db.table("mst_ledger").tenant(tenant).fetch()
    assert [r["guid"] for r in rows] == ["g-cash"]
    assert await db.table("mst_ledger").tenant(other_tenant).count() == 3


async def test_upsert_updates_existing_rows(loader, db, tenant):
    await loader.load("mst_ledger", "upsert", LEDGER_ROWS, tenant)

    changed = [dict(LEDGER_ROWS[0], opening_balance=99.0), {"guid": "g-new", "name": "Rent"}]
    result = await loader.load("mst_ledger", "upsert", changed, tenant)

    assert result.processed == 2
    assert await db.table("mst_ledger").tenant(tenant).count() == 4
    cash = await db.table("mst_ledger").tenant(tenant).eq("guid", "g-cash").fetch_one()
    assert cash["opening_balance"] == 99.0


async def test_insert_keeps_going_after_a_bad_row(loader, db, tenant):
    await loader.load("mst_ledger", "insert", LEDGER_ROWS[:1], tenant)

    rows = [{"guid": "g-rent", "name": "Rent"}, LEDGER_ROWS[0], {"guid": "g-tax", "name": "Tax"}]
    result = await loader.load("mst_ledger", "insert", rows, tenant)

    assert not result.success
    assert result.processed == 2
    assert result.failed == 1
    assert "g-cash" in result.errors[0]
    assert await db.table("mst_ledger").tenant(tenant).count() == 3


async def test_append_is_insert(loader, tenant):
    result = await loader.load("mst_ledger", "append", LEDGER_ROWS, tenant)

    assert result.operation == "insert"
    assert result.processed == 3


async def test_unknown_table_fails_every_row(loader, tenant):
    result = await loader.load("mst_unicorn", "upsert", LEDGER_ROWS, tenant)

    assert result.processed == 0
    assert result.failed == 3
    assert "Unknown table" in result.errors[0]


async def test_unknown_operation_fails_every_row(loader, db, tenant):
    result = await loader.load("mst_ledger", "merge", LEDGER_ROWS, tenant)

    assert result.processed == 0
    assert result.failed == 3
    assert "Unsupported load operation" in result.errors[0]
    assert await db.table("mst_ledger").tenant(tenant).count() == 0


async def test_new_columns_are_added(loader, db, tenant):
    rows = [dict(LEDGER_ROWS[0], credit_limit="5000")]

    result = await loader.load("mst_ledger", "upsert", rows, tenant)

    assert result.success
    assert "credit_limit" in await db.get_columns("mst_ledger")


async def test_invalid_column_name_fails_the_load(loader, db, tenant):
    rows = [dict(LEDGER_ROWS[0], **{"bad column; --": "x"})]

    result = await loader.load("mst_ledger", "upsert", rows, tenant)

    assert result.failed == 1
    assert await db.table("mst_ledger").tenant(tenant).count() == 0


async def test_readers_never_see_a_half_done_replace(loader, db, tenant):
    await loader.load("mst_ledger", "replace", LEDGER_ROWS, tenant)
    rows = [{"guid": f"g-{i}", "name": f"Ledger {i}"} for i in range(300)]
    seen = set()
    done = asyncio.Event()

    async def poll():
        while not done.is_set():
            seen.add(await db.table("mst_ledger").tenant(tenant).count())
            await asyncio.sleep(0)

    reader = asyncio.create_task(poll())
    result = await loader.load("mst_ledger", "replace", rows, tenant)
    done.set()
    await reader

    assert result.processed == 300
    assert seen <= {3, 300}
    assert await db.table("mst_ledger").tenant(tenant).count() == 300


async def test_locks_are_released_after_loads(loader, tenant, other_tenant):
    await asyncio.gather(
        loader.load("mst_ledger", "replace", LEDGER_ROWS, tenant),
        loader.load("mst_ledger", "upsert", LEDGER_ROWS, tenant),
        loader.load("mst_group", "upsert", [{"guid": "g-1", "name": "Assets"}], other_tenant),
    )

    assert len(loader._locks) == 0
