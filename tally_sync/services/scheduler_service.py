"""
Scheduler Service Module
Runs due syncs for configured tenants using APScheduler

Every check_interval minutes one job looks at each scheduled tenant and
starts a sync when its sync_frequency has elapsed since the last attempt.
Due tenants sync in parallel; each run still goes through the
orchestrator's per-tenant lock, so a tenant already syncing is skipped.
The last attempt is seeded from sync_history, so a restart does not
trigger every tenant at once.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..config import config, ScheduledTenant, SchedulerConfig
from ..models.tenant import TenantScope
from ..utils.logger import logger
from ..utils.exceptions import PersistenceError
from ..utils.constants import SYNC_FREQUENCY_MINUTES, SyncMode, SyncStatus
from .sync_service import SyncService, sync_service

JOB_ID = "scheduled_sync"


def is_sync_due(last_attempt: Optional[datetime], frequency: str, now: datetime) -> bool:
    """True if frequency has elapsed since last_attempt (never attempted is always due)"""
    minutes = SYNC_FREQUENCY_MINUTES.get(frequency)
    if minutes is None:
        return False
    if last_attempt is None:
        return True
    return now - last_attempt >= timedelta(minutes=minutes)


class SchedulerService:
    """Service for managing scheduled sync jobs"""

    def __init__(self, sync: SyncService = None, settings: SchedulerConfig = None):
        self.sync = sync or sync_service
        self.settings = settings or config.scheduler
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.is_running = False
        self._state: Dict[str, Dict[str, Any]] = {}

    def start(self) -> None:
        """Start the scheduler with one due-check job"""
        if self.scheduler is None:
            self.scheduler = AsyncIOScheduler()

        self.scheduler.add_job(
            self.run_due,
            trigger=IntervalTrigger(minutes=max(1, self.settings.check_interval)),
            id=JOB_ID,
            name="Scheduled Sync",
            replace_existing=True,
            max_instances=1,
            coalesce=True
        )
        if not self.scheduler.running:
            self.scheduler.start()
            self.is_running = True
            logger.info(
                f"Scheduler started: {len(self.settings.tenants)} tenants, "
                f"checking every {self.settings.check_interval} min"
            )

    def stop(self) -> None:
        """Stop the scheduler"""
        if self.scheduler and self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            self.is_running = False
            logger.info("Scheduler stopped")

    def get_status(self) -> Dict:
        """Scheduler status, jobs and per-tenant last attempt/success"""
        jobs = []
        if self.scheduler:
            for job in self.scheduler.get_jobs():
                next_run = job.next_run_time
                jobs.append({
                    "id": job.id,
                    "name": job.name,
                    "next_run": next_run.isoformat() if next_run else None
                })

        tenants = []
        for entry in self.settings.tenants:
            state = self._state.get(self._tenant(entry).key, {})
            tenants.append({
                "company_id": entry.company_id,
                "division_id": entry.division_id,
                "sync_frequency": entry.sync_frequency,
                "mode": entry.mode,
                "last_sync_attempt": _iso(state.get("last_sync_attempt")),
                "last_sync_success": _iso(state.get("last_sync_success")),
                "last_status": state.get("last_status")
            })

        return {
            "is_running": self.is_running,
            "enabled": self.settings.enabled,
            "jobs": jobs,
            "tenants": tenants
        }

    @staticmethod
    def _tenant(entry: ScheduledTenant) -> TenantScope:
        return TenantScope(company_id=entry.company_id, division_id=entry.division_id)

    async def _last_attempt(self, tenant: TenantScope) -> Optional[datetime]:
        state = self._state.setdefault(tenant.key, {})
        if "last_sync_attempt" not in state:
            state["last_sync_attempt"] = None
            try:
                history = await self.sync.get_sync_history(tenant, limit=1)
            except PersistenceError as e:
                logger.warning(f"Could not read sync history for {tenant.key}: {e}")
                history = []
            if history and history[0].get("started_at"):
                state["last_sync_attempt"] = datetime.fromisoformat(history[0]["started_at"])
        return state["last_sync_attempt"]

    async def run_due(self, now: Optional[datetime] = None, only: Optional[TenantScope] = None) -> List[Dict]:
        """
        Start a sync for every scheduled tenant that is due

        Args:
            now: Reference time for the due check
            only: Run just this tenant, ignoring its frequency (manual trigger)

        Returns:
            One result entry per tenant that was started
        """
        now = now or datetime.now()
        due = []
        for entry in self.settings.tenants:
            tenant = self._tenant(entry)
            if only is not None:
                if tenant.key == only.key:
                    due.append(entry)
                continue
            last_attempt = await self._last_attempt(tenant)
            if is_sync_due(last_attempt, entry.sync_frequency, now):
                due.append(entry)
            else:
                logger.debug(f"Sync not due for {tenant.key} ({entry.sync_frequency})")

        if not due:
            return []

        logger.info(f"{len(due)} scheduled tenants are due for sync")
        return list(await asyncio.gather(*(self._run_one(entry, now) for entry in due)))

    async def _run_one(self, entry: ScheduledTenant, now: datetime) -> Dict:
        tenant = self._tenant(entry)
        state = self._state.setdefault(tenant.key, {})
        state["last_sync_attempt"] = now

        from_date = to_date = None
        if entry.mode == SyncMode.INCREMENTAL:
            from_date = (now - timedelta(days=entry.lookback_days)).date().isoformat()
            to_date = now.date().isoformat()

        session = await self.sync.run(tenant, entry.mode, entry.categories, from_date, to_date)

        state["last_status"] = session.status
        if session.status in (SyncStatus.COMPLETED, SyncStatus.PARTIAL):
            state["last_sync_success"] = session.completed_at or datetime.now()
        else:
            logger.warning(f"Scheduled sync for {tenant.key} ended {session.status}: {session.error_message}")

        return {
            "company_id": tenant.company_id,
            "division_id": tenant.division_id,
            "session_id": session.session_id,
            "status": session.status,
            "records_processed": session.progress.records_processed
        }


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


# Global service instance
scheduler_service = SchedulerService()
