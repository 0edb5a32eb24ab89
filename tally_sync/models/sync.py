"""
Sync Models
Session, progress and request models for the sync orchestrator
"""

import uuid
from datetime import datetime
from typing import Dict, List, Literal, Optional
from pydantic import BaseModel, Field

from .ingest import LoadResult
from .reconcile import AmountRecalcResult, RepairResult
from .tenant import TenantScope
from ..utils.constants import SyncStatus, SyncStage


class SyncProgress(BaseModel):
    stage: str = SyncStage.STARTING
    current: int = 0
    total: int = 0
    records_processed: int = 0

    @property
    def percent(self) -> int:
        return int(self.current * 100 / self.total) if self.total else 0


class TableSyncResult(BaseModel):
    category: str
    status: str
    fetched: int = 0
    loads: List[LoadResult] = []
    error: Optional[str] = None


class SyncSession(BaseModel):
    """One sync run. Owned by its caller; the orchestrator keeps no copy."""
    session_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    tenant: TenantScope
    mode: str
    status: str = SyncStatus.PENDING
    progress: SyncProgress = Field(default_factory=SyncProgress)
    tables: Dict[str, TableSyncResult] = Field(default_factory=dict)
    repair: Optional[RepairResult] = None
    amounts: Optional[AmountRecalcResult] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None

    @property
    def failed_tables(self) -> List[str]:
        return [name for name, result in self.tables.items() if result.status == "failed"]


class SyncRequest(BaseModel):
    company_id: str = Field(min_length=1)
    division_id: str = Field(min_length=1)
    categories: Optional[List[str]] = None
    from_date: Optional[str] = None
    to_date: Optional[str] = None


class ReconcileRequest(BaseModel):
    company_id: str = Field(min_length=1)
    division_id: str = Field(min_length=1)
    diagnostic_voucher_number: Optional[str] = None


class TenantRequest(BaseModel):
    company_id: str = Field(min_length=1)
    division_id: str = Field(min_length=1)
