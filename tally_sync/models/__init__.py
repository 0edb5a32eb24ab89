# Models Package
# Pydantic request, response and domain models

from .tenant import TenantScope
from .ingest import (
    LoadResult, BulkIngestRequest, BulkIngestResponse, TableBatch, TableIngestResult,
    WebhookEvent, WebhookResponse
)
from .reconcile import RepairCounts, RepairResult, AmountRecalcResult
from .sync import SyncProgress, SyncSession, TableSyncResult, SyncRequest, ReconcileRequest, TenantRequest
from .transaction import (
    Voucher, VoucherDetail, AccountingEntry, InventoryEntry,
    VoucherImportRequest, LedgerLine, InventoryLine, TallyImportResult
)
from .master import HierarchyNode
