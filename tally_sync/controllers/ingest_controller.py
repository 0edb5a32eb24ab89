"""
Ingest Controller
=================
Bulk ingestion endpoint for rows pushed by external loaders.

POST /api/ingest
    {
      "api_key": "...",                 (or X-API-Key header)
      "company_id": "...", "division_id": "...",
      "import_type": "full_sync|incremental|master_only|transaction_only",
      "tables": [{"table_name": "mst_ledger", "operation": "upsert", "data": [...]}]
    }

master_only skips trn_* tables, transaction_only skips mst_* tables.
Every row is written under the request's tenant.

POST /api/ingest/webhook
    {
      "api_key": "...", "event_type": "ledger_updated",
      "company_id": "...", "division_id": "...",
      "entity_type": "ledger", "entity_guid": "...", "entity_data": {...}
    }

Every event type upserts the one entity into the table its entity_type
maps to (WEBHOOK_ENTITY_TABLES).
"""

import hmac
from typing import Optional

from fastapi import APIRouter, Header, HTTPException

from ..config import config
from ..models.ingest import (
    BulkIngestRequest, BulkIngestResponse, TableIngestResult, WebhookEvent, WebhookResponse
)
from ..models.tenant import TenantScope
from ..services.bulk_loader import bulk_loader_service
from ..utils.constants import (
    ErrorCode, LoadOperation, MASTER_TABLES, TRANSACTION_TABLES, WEBHOOK_ENTITY_TABLES
)
from ..utils.logger import logger
from ..views.json_view import JsonView

router = APIRouter()

SKIPPED_BY_IMPORT_TYPE = {
    "master_only": set(TRANSACTION_TABLES),
    "transaction_only": set(MASTER_TABLES),
}


def _check_api_key(provided: Optional[str]) -> None:
    expected = config.api.ingest_api_key
    if not expected:
        return
    if not provided or not hmac.compare_digest(provided, expected):
        raise HTTPException(status_code=401, detail=JsonView.error(ErrorCode.UNAUTHORIZED, "Invalid API key"))


@router.post("", response_model=BulkIngestResponse)
async def bulk_ingest(body: BulkIngestRequest, x_api_key: Optional[str] = Header(default=None)):
    """Load table batches for one tenant"""
    _check_api_key(body.api_key or x_api_key)
    tenant = TenantScope(company_id=body.company_id, division_id=body.division_id)
    skipped = SKIPPED_BY_IMPORT_TYPE.get(body.import_type, set())

    logger.info(f"Bulk ingest ({body.import_type}) for {tenant.key}: {len(body.tables)} tables")

    results = []
    for batch in body.tables:
        if batch.table_name in skipped:
            logger.debug(f"Skipping {batch.table_name} for {body.import_type}")
            continue
        load = await bulk_loader_service.load(batch.table_name, batch.operation, batch.data, tenant)
        results.append(TableIngestResult(
            table_name=batch.table_name,
            success=load.success,
            processed_count=load.processed,
            failed_count=load.failed,
            errors=load.errors
        ))

    total_processed = sum(r.processed_count for r in results)
    total_failed = sum(r.failed_count for r in results)
    return BulkIngestResponse(
        success=total_failed == 0,
        message=f"Processed {total_processed} records across {len(results)} tables, {total_failed} failed",
        total_processed=total_processed,
        total_failed=total_failed,
        table_results=results
    )


@router.post("/webhook", response_model=WebhookResponse)
async def webhook(body: WebhookEvent, x_api_key: Optional[str] = Header(default=None)):
    """Upsert the single entity carried by a change event"""
    _check_api_key(body.api_key or x_api_key)
    table = WEBHOOK_ENTITY_TABLES.get(body.entity_type)
    if table is None:
        raise HTTPException(
            status_code=400,
            detail=JsonView.error(ErrorCode.VALIDATION_ERROR, f"Unknown entity type: {body.entity_type}")
        )

    tenant = TenantScope(company_id=body.company_id, division_id=body.division_id)
    row = {**body.entity_data, "guid": body.entity_guid}
    logger.info(f"Webhook {body.event_type} for {body.entity_type} {body.entity_guid} [{tenant.key}]")

    load = await bulk_loader_service.load(table, LoadOperation.UPSERT, [row], tenant)
    return WebhookResponse(
        success=load.success,
        message="Webhook processed successfully" if load.success else "Failed to process webhook",
        event_type=body.event_type,
        entity_type=body.entity_type,
        entity_guid=body.entity_guid,
        errors=load.errors
    )
