"""
Relationship Repair Service
===========================
Heals voucher_guid on trn_accounting / trn_inventory rows that were
ingested with a missing or stale reference to their voucher.

STRATEGY:
--------
1. Load every voucher of the tenant once into a voucher_number -> guid
   map. A number shared by two vouchers is ambiguous and never used.
2. Page through child rows with a non-empty voucher_number, ordered by
   guid, repair_batch_size rows per page.
3. A row whose voucher is found and whose voucher_guid differs is
   updated and counted as fixed. Rows without a match are skipped.
4. Paging stops on a short page or on a query error.

LEGACY INVENTORY SCHEMA:
-----------------------
Older trn_inventory tables have no voucher_number column. A probe query
detects this (PgErrorCode.UNDEFINED_COLUMN) and the inventory pass then
derives the voucher GUID from the entry's own GUID, which the
transformer builds as {voucherGuid}-inventory-{n}. That convention is
an assumption about how the rows were written; rows whose GUID lacks
the token are left alone.

Repair is idempotent: a second run over unchanged data fixes nothing.
"""

from typing import Dict, Optional

from ..config import config
from ..models.reconcile import RepairCounts, RepairResult
from ..models.tenant import TenantScope
from ..utils.logger import logger
from ..utils.decorators import timed
from ..utils.exceptions import PersistenceError
from ..utils.constants import INVENTORY_GUID_TOKEN, PgErrorCode
from .database_service import DatabaseService, database_service

INVENTORY_SEPARATOR = f"-{INVENTORY_GUID_TOKEN}-"


def derive_voucher_guid(entry_guid: Optional[str]) -> Optional[str]:
    """'V123-inventory-2' -> 'V123'; None when the entry GUID lacks the separator"""
    if not entry_guid or INVENTORY_SEPARATOR not in entry_guid:
        return None
    prefix = entry_guid.split(INVENTORY_SEPARATOR)[0]
    return prefix or None


class RelationshipRepairService:
    """Backfills voucher_guid on voucher line items"""

    def __init__(self, db: DatabaseService = None, batch_size: int = None):
        self.db = db or database_service
        self.batch_size = batch_size or config.sync.repair_batch_size

    @timed
    async def repair(self, tenant: TenantScope, diagnostic_voucher_number: Optional[str] = None) -> RepairResult:
        """Run the accounting then inventory pass for one tenant"""
        logger.info(f"Repairing voucher links for {tenant.key}")
        voucher_map = await self._load_voucher_map(tenant)

        result = RepairResult()
        result.accounting = await self._repair_by_voucher_number("trn_accounting", tenant, voucher_map)
        result.inventory = await self._repair_inventory(tenant, voucher_map)

        voucher_number = diagnostic_voucher_number or config.sync.diagnostic_voucher_number
        if voucher_number:
            result.diagnostics = {voucher_number: await self.diagnose(tenant, voucher_number)}

        logger.info(
            f"Repair done for {tenant.key}: accounting {result.accounting.fixed}/{result.accounting.total}, "
            f"inventory {result.inventory.fixed}/{result.inventory.total} ({result.inventory.strategy})"
        )
        return result

    async def _load_voucher_map(self, tenant: TenantScope) -> Dict[str, str]:
        voucher_map: Dict[str, str] = {}
        ambiguous = set()
        offset = 0

        while True:
            try:
                rows = await (
                    self.db.table("trn_voucher")
                    .select("guid, voucher_number")
                    .tenant(tenant)
                    .not_empty("voucher_number")
                    .order("guid")
                    .range(offset, offset + self.batch_size - 1)
                    .fetch()
                )
            except PersistenceError as e:
                logger.warning(f"Stopped loading vouchers at offset {offset}: {e}")
                break
            for row in rows:
                number = row["voucher_number"]
                if number in voucher_map and voucher_map[number] != row["guid"]:
                    ambiguous.add(number)
                voucher_map.setdefault(number, row["guid"])
            if len(rows) < self.batch_size:
                break
            offset += self.batch_size

        for number in ambiguous:
            voucher_map.pop(number, None)
        if ambiguous:
            logger.warning(f"{len(ambiguous)} voucher numbers are shared by several vouchers and will not be matched")
        logger.debug(f"Voucher map for {tenant.key}: {len(voucher_map)} entries")
        return voucher_map

    async def _apply_updates(self, table: str, tenant: TenantScope, updates: Dict[str, str]) -> int:
        """Set voucher_guid for {entry_guid: voucher_guid}; returns rows updated"""
        if not updates:
            return 0
        try:
            await self.db.execute_many(
                f"UPDATE {table} SET voucher_guid = ? WHERE company_id = ? AND division_id = ? AND guid = ?",
                [(voucher_guid, tenant.company_id, tenant.division_id, guid) for guid, voucher_guid in updates.items()]
            )
            return len(updates)
        except PersistenceError as e:
            logger.warning(f"Could not update {len(updates)} rows in {table}: {e}")
            return 0

    async def _repair_by_voucher_number(self, table: str, tenant: TenantScope,
                                        voucher_map: Dict[str, str]) -> RepairCounts:
        counts = RepairCounts(strategy="voucher_number")
        skipped = 0
        offset = 0

        while True:
            try:
                rows = await (
                    self.db.table(table)
                    .select("guid, voucher_number, voucher_guid")
                    .tenant(tenant)
                    .not_empty("voucher_number")
                    .order("guid")
                    .range(offset, offset + self.batch_size - 1)
                    .fetch()
                )
            except PersistenceError as e:
                logger.warning(f"Stopped paging {table} at offset {offset}: {e}")
                break

            counts.total += len(rows)
            updates = {}
            for row in rows:
                voucher_guid = voucher_map.get(row["voucher_number"])
                if voucher_guid is None:
                    skipped += 1
                    continue
                if row["voucher_guid"] != voucher_guid:
                    updates[row["guid"]] = voucher_guid
            counts.fixed += await self._apply_updates(table, tenant, updates)

            if len(rows) < self.batch_size:
                break
            offset += self.batch_size

        if skipped:
            logger.debug(f"{table}: {skipped} rows had no matching voucher")
        return counts

    async def _repair_inventory(self, tenant: TenantScope, voucher_map: Dict[str, str]) -> RepairCounts:
        try:
            await self.db.table("trn_inventory").select("voucher_number").tenant(tenant).limit(1).fetch()
        except PersistenceError as e:
            if e.code == PgErrorCode.UNDEFINED_COLUMN:
                logger.info("trn_inventory has no voucher_number column, deriving voucher GUIDs from entry GUIDs")
                return await self._repair_by_guid_prefix(tenant)
            logger.warning(f"Inventory probe failed: {e}")
            return RepairCounts(strategy="voucher_number")

        return await self._repair_by_voucher_number("trn_inventory", tenant, voucher_map)

    async def _repair_by_guid_prefix(self, tenant: TenantScope) -> RepairCounts:
        counts = RepairCounts(strategy="guid_prefix")
        offset = 0

        while True:
            try:
                rows = await (
                    self.db.table("trn_inventory")
                    .select("guid, voucher_guid")
                    .tenant(tenant)
                    .order("guid")
                    .range(offset, offset + self.batch_size - 1)
                    .fetch()
                )
            except PersistenceError as e:
                logger.warning(f"Stopped paging trn_inventory at offset {offset}: {e}")
                break

            counts.total += len(rows)
            updates = {}
            for row in rows:
                derived = derive_voucher_guid(row["guid"])
                if derived and derived != row["voucher_guid"]:
                    updates[row["guid"]] = derived
            counts.fixed += await self._apply_updates("trn_inventory", tenant, updates)

            if len(rows) < self.batch_size:
                break
            offset += self.batch_size

        return counts

    async def diagnose(self, tenant: TenantScope, voucher_number: str) -> Dict[str, object]:
        """Link counts for one voucher number"""
        voucher = await (
            self.db.table("trn_voucher").select("guid").tenant(tenant).eq("voucher_number", voucher_number).fetch_one()
        )
        if not voucher:
            return {"error": "Voucher not found"}

        accounting = await self.db.table("trn_accounting").tenant(tenant).eq("voucher_guid", voucher["guid"]).count()
        inventory = await self.db.table("trn_inventory").tenant(tenant).eq("voucher_guid", voucher["guid"]).count()
        return {
            "voucher_guid": voucher["guid"],
            "accounting_entries": accounting,
            "inventory_entries": inventory
        }


# Global service instance
repair_service = RelationshipRepairService()
