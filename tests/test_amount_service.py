import pytest

from tally_sync.services.amount_service import AmountRecalcService
from tally_sync.services.bulk_loader import BulkLoaderService


@pytest.fixture
async def loaded(db, tenant):
    loader = BulkLoaderService(db)
    await loader.load("trn_voucher", "replace", [
        {"guid": "vg-1", "voucher_number": "V001"},
        {"guid": "vg-2", "voucher_number": "V002"},
        {"guid": "vg-3", "voucher_number": "V003", "total_amount": 75.0, "final_amount": 75.0},
    ], tenant)
    await loader.load("trn_accounting", "replace", [
        {"guid": "vg-1-accounting-1", "voucher_guid": "vg-1", "amount": 500.0},
        {"guid": "vg-1-accounting-2", "voucher_guid": "vg-1", "amount": -500.0},
        {"guid": "vg-2-accounting-1", "voucher_guid": "vg-2", "amount": 100.25},
        {"guid": "vg-2-accounting-2", "voucher_guid": "vg-2", "amount": 20.0},
        {"guid": "vg-2-accounting-3", "voucher_guid": "vg-2", "amount": -120.25},
    ], tenant)
    return db


async def _amounts(db, tenant):
    rows = await db.table("trn_voucher").select("guid, total_amount, final_amount").tenant(tenant).fetch()
    return {row["guid"]: (row["total_amount"], row["final_amount"]) for row in rows}


async def test_totals_are_sum_of_positive_entries(loaded, tenant):
    result = await AmountRecalcService(loaded, batch_cap=100).recalculate(tenant)

    assert result.vouchers_processed == 3
    assert result.vouchers_updated == 3
    assert result.failed == 0

    amounts = await _amounts(loaded, tenant)
    assert amounts["vg-1"] == (500.0, 500.0)
    assert amounts["vg-2"] == (120.25, 120.25)
    assert amounts["vg-3"] == (0.0, 0.0)


async def test_second_run_changes_nothing(loaded, tenant):
    service = AmountRecalcService(loaded, batch_cap=100)
    await service.recalculate(tenant)

    again = await service.recalculate(tenant)

    assert again.vouchers_processed == 3
    assert again.vouchers_updated == 0


async def test_batch_cap_limits_vouchers(loaded, tenant):
    result = await AmountRecalcService(loaded, batch_cap=2).recalculate(tenant)

    assert result.vouchers_processed == 2
    amounts = await _amounts(loaded, tenant)
    assert amounts["vg-3"] == (75.0, 75.0)


async def test_other_tenants_are_untouched(loaded, tenant, other_tenant):
    await BulkLoaderService(loaded).load(
        "trn_voucher", "replace", [{"guid": "vg-1", "total_amount": 1.0, "final_amount": 1.0}], other_tenant
    )

    await AmountRecalcService(loaded, batch_cap=100).recalculate(tenant)

    assert (await _amounts(loaded, other_tenant))["vg-1"] == (1.0, 1.0)
