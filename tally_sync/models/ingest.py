"""
Ingest Models
Pydantic models for the bulk loader and the bulk ingestion API
"""

from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field


class LoadResult(BaseModel):
    table_name: str
    operation: str
    total: int = 0
    processed: int = 0
    failed: int = 0
    deleted: int = 0
    errors: List[str] = []

    @property
    def success(self) -> bool:
        return self.failed == 0


class TableBatch(BaseModel):
    table_name: str
    operation: Literal["insert", "append", "upsert", "replace"] = "upsert"
    data: List[Dict[str, Any]] = []


class BulkIngestRequest(BaseModel):
    api_key: Optional[str] = None
    company_id: str = Field(min_length=1)
    division_id: str = Field(min_length=1)
    import_type: Literal["full_sync", "incremental", "master_only", "transaction_only"] = "incremental"
    tables: List[TableBatch] = Field(min_length=1)


class TableIngestResult(BaseModel):
    table_name: str
    success: bool
    processed_count: int = 0
    failed_count: int = 0
    errors: List[str] = []


class BulkIngestResponse(BaseModel):
    success: bool
    message: str
    total_processed: int
    total_failed: int
    table_results: List[TableIngestResult]


class WebhookEvent(BaseModel):
    """One entity pushed by a Tally-side change hook"""
    api_key: Optional[str] = None
    event_type: Literal["master_data_changed", "transaction_created", "voucher_updated", "ledger_updated"]
    company_id: str = Field(min_length=1)
    division_id: str = Field(min_length=1)
    entity_type: str
    entity_guid: str = Field(min_length=1)
    entity_data: Dict[str, Any] = Field(default_factory=dict)
    timestamp: Optional[str] = None


class WebhookResponse(BaseModel):
    success: bool
    message: str
    event_type: str
    entity_type: str
    entity_guid: str
    errors: List[str] = []
