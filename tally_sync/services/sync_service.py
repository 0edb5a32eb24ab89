"""
Sync Service Module
====================
Orchestrates data synchronization between Tally and the tenant store.

ARCHITECTURE:
------------
For each category, in order (masters before vouchers):
1. TallyService     - export request over HTTP (XMLBuilder envelope)
2. XMLExtractor     - cut response into typed field maps
3. RecordTransformer - tenant stamping, GUIDs, voucher line items
4. BulkLoaderService - replace (full) or upsert (incremental) per table
Then, once per run:
5. RelationshipRepairService - backfill voucher_guid on line items
6. AmountRecalcService       - voucher totals from accounting entries

SYNC TYPES:
-----------
1. FULL SYNC (full_sync):
   - replace per table: the tenant's rows are swapped for Tally's
   - a category that comes back empty keeps its existing rows
2. INCREMENTAL SYNC (incremental_sync):
   - upsert scoped to a voucher date range
   - rows not in the response are left untouched

STATE:
-----
Every run produces a SyncSession that is handed to the caller and to an
optional progress callback; this service keeps no per-run state. The
only shared state is a per-tenant lock that rejects a second concurrent
run for the same tenant. Callers that start a run in the background
reserve the tenant first (try_reserve), so a second request is refused
before its run is even scheduled; the run releases the reservation.

FAILURE POLICY:
--------------
- a category that fails to fetch or load is recorded and the run moves on
- status is completed / partial / failed depending on how many failed
- only an unreachable database at startup fails the run outright
- no exception escapes run(): callers always get a session back
"""

import inspect
import json
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from ..config import config
from ..models.sync import SyncProgress, SyncSession, TableSyncResult
from ..models.tenant import TenantScope
from ..utils.logger import logger
from ..utils.decorators import timed
from ..utils.locks import KeyedLock
from ..utils.exceptions import PersistenceError, TallyRequestError
from ..utils.constants import LoadOperation, SyncMode, SyncStage, SyncStatus, TableStatus
from .amount_service import AmountRecalcService, amount_service
from .bulk_loader import BulkLoaderService, bulk_loader_service
from .database_service import DatabaseService, database_service
from .export_config import ExportDefinitions, export_definitions
from .repair_service import RelationshipRepairService, repair_service
from .tally_service import TallyService, tally_service
from .transformer import RecordTransformer
from .xml_extractor import XMLExtractor, xml_extractor

ProgressCallback = Callable[[SyncSession], Union[None, Awaitable[None]]]


class SyncService:
    """Service for synchronizing data from Tally into the tenant store"""

    def __init__(
        self,
        db: DatabaseService = None,
        tally: TallyService = None,
        extractor: XMLExtractor = None,
        loader: BulkLoaderService = None,
        repairer: RelationshipRepairService = None,
        recalculator: AmountRecalcService = None,
        definitions: ExportDefinitions = None
    ):
        self.db = db or database_service
        self.tally = tally or tally_service
        self.extractor = extractor or xml_extractor
        self.loader = loader or bulk_loader_service
        self.repairer = repairer or repair_service
        self.recalculator = recalculator or amount_service
        self.definitions = definitions or export_definitions
        self._locks = KeyedLock()
        self._reservations: Dict[str, str] = {}

    def is_running(self, tenant: TenantScope) -> bool:
        """True while a run holds this tenant's lock or a session has reserved it"""
        return self._locks.locked(tenant.key) or tenant.key in self._reservations

    def try_reserve(self, tenant: TenantScope, session_id: str) -> bool:
        """Claim the tenant for a session that will run later; False if taken"""
        if self.is_running(tenant):
            return False
        self._reservations[tenant.key] = session_id
        return True

    def release(self, tenant: TenantScope, session_id: str) -> None:
        """Drop a reservation, if session_id still owns it"""
        if self._reservations.get(tenant.key) == session_id:
            del self._reservations[tenant.key]

    @staticmethod
    async def _notify(session: SyncSession, on_progress: Optional[ProgressCallback]) -> None:
        if on_progress is None:
            return
        try:
            outcome = on_progress(session)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.warning(f"Progress callback failed: {e}")

    async def _stage(self, session: SyncSession, stage: str, on_progress: Optional[ProgressCallback]) -> None:
        session.progress.stage = stage
        await self._notify(session, on_progress)

    async def full_sync(self, tenant: TenantScope, categories: Optional[List[str]] = None,
                        on_progress: Optional[ProgressCallback] = None,
                        session: Optional[SyncSession] = None) -> SyncSession:
        """Replace the tenant's data with a fresh export of every category"""
        return await self.run(tenant, SyncMode.FULL, categories, on_progress=on_progress, session=session)

    async def incremental_sync(self, tenant: TenantScope, from_date: Optional[str] = None,
                               to_date: Optional[str] = None, categories: Optional[List[str]] = None,
                               on_progress: Optional[ProgressCallback] = None,
                               session: Optional[SyncSession] = None) -> SyncSession:
        """Upsert masters and the vouchers of a date range"""
        return await self.run(tenant, SyncMode.INCREMENTAL, categories, from_date, to_date, on_progress, session)

    @timed
    async def run(
        self,
        tenant: TenantScope,
        mode: str = SyncMode.FULL,
        categories: Optional[List[str]] = None,
        from_date: Optional[str] = None,
        to_date: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
        session: Optional[SyncSession] = None
    ) -> SyncSession:
        """Run one sync for a tenant and return its session"""
        session = session or SyncSession(tenant=tenant, mode=mode)
        reserved_by = self._reservations.get(tenant.key)

        if self._locks.locked(tenant.key) or reserved_by not in (None, session.session_id):
            self.release(tenant, session.session_id)
            session.status = SyncStatus.REJECTED
            session.error_message = "Sync already in progress for this tenant"
            logger.warning(f"Rejected {mode} sync for {tenant.key}: already running")
            await self._notify(session, on_progress)
            return session

        try:
            async with self._locks.hold(tenant.key):
                try:
                    await self._run_locked(session, categories, from_date, to_date, on_progress)
                except Exception as e:
                    logger.error(f"Sync {session.session_id} for {tenant.key} aborted: {e}")
                    session.status = SyncStatus.FAILED
                    session.error_message = str(e)

                session.completed_at = datetime.now()
                await self._record_history(session)
                session.progress.stage = SyncStage.COMPLETED
                await self._notify(session, on_progress)
        finally:
            self.release(tenant, session.session_id)

        logger.info(
            f"Sync {session.session_id} for {tenant.key} finished: {session.status}, "
            f"{session.progress.records_processed} rows"
        )
        return session

    async def _run_locked(
        self,
        session: SyncSession,
        categories: Optional[List[str]],
        from_date: Optional[str],
        to_date: Optional[str],
        on_progress: Optional[ProgressCallback]
    ) -> None:
        tenant = session.tenant
        categories = list(categories or config.sync.categories)
        session.status = SyncStatus.RUNNING
        session.started_at = datetime.now()
        session.progress = SyncProgress(stage=SyncStage.STARTING, total=len(categories) + 2)
        logger.info(f"Starting {session.mode} sync {session.session_id} for {tenant.key}: {', '.join(categories)}")
        await self._notify(session, on_progress)

        try:
            await self.db.connect()
            await self.db.create_tables()
            if not await self.db.ping():
                raise PersistenceError("Database did not answer SELECT 1")
        except (PersistenceError, OSError) as e:
            session.status = SyncStatus.FAILED
            session.error_message = f"Database unavailable: {e}"
            logger.error(session.error_message)
            return

        operation = LoadOperation.REPLACE if session.mode == SyncMode.FULL else LoadOperation.UPSERT
        transformer = RecordTransformer(tenant)

        for category in categories:
            try:
                result = await self._sync_category(session, category, transformer, operation,
                                                   from_date, to_date, on_progress)
            except Exception as e:
                logger.error(f"Category {category} failed: {e}")
                result = TableSyncResult(category=category, status=TableStatus.FAILED, error=str(e))
            session.tables[category] = result
            session.progress.current += 1
            await self._notify(session, on_progress)

        await self._stage(session, SyncStage.REPAIR, on_progress)
        try:
            session.repair = await self.repairer.repair(tenant)
        except PersistenceError as e:
            logger.error(f"Relationship repair failed: {e}")
        session.progress.current += 1

        await self._stage(session, SyncStage.RECALCULATE, on_progress)
        try:
            session.amounts = await self.recalculator.recalculate(tenant)
        except PersistenceError as e:
            logger.error(f"Amount recalculation failed: {e}")
        session.progress.current += 1

        failed = session.failed_tables
        if not failed:
            session.status = SyncStatus.COMPLETED
        elif len(failed) == len(session.tables):
            session.status = SyncStatus.FAILED
            session.error_message = "Every category failed"
        else:
            session.status = SyncStatus.PARTIAL
            session.error_message = f"Failed categories: {', '.join(failed)}"

    async def _sync_category(
        self,
        session: SyncSession,
        category: str,
        transformer: RecordTransformer,
        operation: str,
        from_date: Optional[str],
        to_date: Optional[str],
        on_progress: Optional[ProgressCallback]
    ) -> TableSyncResult:
        definition = self.definitions.get(category)
        result = TableSyncResult(category=category, status=TableStatus.SUCCESS)

        await self._stage(session, SyncStage.FETCH, on_progress)
        try:
            xml_response = await self.tally.export(category, from_date, to_date)
        except TallyRequestError as e:
            logger.error(f"Fetching {category} failed: {e}")
            result.status = TableStatus.FAILED
            result.error = str(e)
            return result

        await self._stage(session, SyncStage.EXTRACT, on_progress)
        records = self.extractor.extract(xml_response, definition)
        result.fetched = len(records)
        if not records:
            logger.warning(f"No {category} records in Tally response, existing rows kept")
            result.status = TableStatus.EMPTY
            return result

        rows_by_table = transformer.transform_all(records, definition)

        await self._stage(session, SyncStage.LOAD, on_progress)
        for table, rows in rows_by_table.items():
            load = await self.loader.load(table, operation, rows, session.tenant)
            result.loads.append(load)
            session.progress.records_processed += load.processed
            await self._notify(session, on_progress)

        failed_loads = [load.table_name for load in result.loads if load.total and not load.processed]
        if failed_loads:
            result.status = TableStatus.FAILED
            result.error = f"Nothing loaded into {', '.join(failed_loads)}"
        return result

    async def _record_history(self, session: SyncSession) -> None:
        summary = {
            category: {"status": table.status, "fetched": table.fetched, "error": table.error}
            for category, table in session.tables.items()
        }
        try:
            await self.db.execute(
                "INSERT INTO sync_history (session_id, company_id, division_id, mode, status, started_at, "
                "completed_at, records_processed, error_message, summary) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    session.session_id,
                    session.tenant.company_id,
                    session.tenant.division_id,
                    session.mode,
                    session.status,
                    session.started_at.isoformat() if session.started_at else None,
                    session.completed_at.isoformat() if session.completed_at else None,
                    session.progress.records_processed,
                    session.error_message,
                    json.dumps(summary)
                )
            )
        except (PersistenceError, OSError) as e:
            logger.warning(f"Could not record sync history: {e}")

    async def get_sync_history(self, tenant: Optional[TenantScope] = None, limit: int = 50) -> List[Dict[str, Any]]:
        """Most recent runs first"""
        query = self.db.table("sync_history").order("id", desc=True).limit(limit)
        if tenant:
            query = query.tenant(tenant)
        rows = await query.fetch()
        for row in rows:
            row["summary"] = json.loads(row["summary"]) if row.get("summary") else {}
        return rows


# Global service instance
sync_service = SyncService()
