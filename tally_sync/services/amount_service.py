"""
Amount Recalculation Service
Sets each voucher's total_amount and final_amount to the sum of its
positive accounting entries, touching only vouchers whose stored values
differ.
"""

from typing import Dict

from ..config import config
from ..models.reconcile import AmountRecalcResult
from ..models.tenant import TenantScope
from ..utils.logger import logger
from ..utils.decorators import timed
from ..utils.exceptions import PersistenceError
from .database_service import DatabaseService, database_service


def _money(value) -> float:
    return round(float(value or 0), 2)


class AmountRecalcService:
    """Voucher totals from accounting entries"""

    def __init__(self, db: DatabaseService = None, batch_cap: int = None):
        self.db = db or database_service
        self.batch_cap = batch_cap or config.sync.amount_batch_cap

    async def _positive_sums(self, tenant: TenantScope) -> Dict[str, float]:
        rows = await self.db.fetch_all(
            "SELECT voucher_guid, SUM(CAST(amount AS REAL)) AS total FROM trn_accounting "
            "WHERE company_id = ? AND division_id = ? AND voucher_guid IS NOT NULL "
            "AND CAST(amount AS REAL) > 0 GROUP BY voucher_guid",
            (tenant.company_id, tenant.division_id)
        )
        return {row["voucher_guid"]: row["total"] for row in rows}

    @timed
    async def recalculate(self, tenant: TenantScope) -> AmountRecalcResult:
        """Recompute totals for up to batch_cap vouchers of one tenant"""
        result = AmountRecalcResult()

        vouchers = await (
            self.db.table("trn_voucher")
            .select("guid, total_amount, final_amount")
            .tenant(tenant)
            .order("guid")
            .limit(self.batch_cap)
            .fetch()
        )
        sums = await self._positive_sums(tenant)

        for voucher in vouchers:
            result.vouchers_processed += 1
            try:
                computed = _money(sums.get(voucher["guid"]))
                if _money(voucher["total_amount"]) == computed and _money(voucher["final_amount"]) == computed:
                    continue
                await (
                    self.db.table("trn_voucher")
                    .tenant(tenant)
                    .eq("guid", voucher["guid"])
                    .update({"total_amount": computed, "final_amount": computed})
                )
                result.vouchers_updated += 1
            except (PersistenceError, TypeError, ValueError) as e:
                result.failed += 1
                logger.warning(f"Amount recalculation failed for voucher {voucher['guid']}: {e}")

        logger.info(
            f"Amounts for {tenant.key}: {result.vouchers_updated} of {result.vouchers_processed} vouchers updated"
        )
        return result


# Global service instance
amount_service = AmountRecalcService()
