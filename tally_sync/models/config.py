"""
Config Models
Partial updates accepted by PUT /api/config
"""

from typing import List, Optional
from pydantic import BaseModel


class TallyConfigUpdate(BaseModel):
    server: Optional[str] = None
    port: Optional[int] = None
    url: Optional[str] = None
    company: Optional[str] = None
    from_date: Optional[str] = None
    to_date: Optional[str] = None
    timeout: Optional[float] = None
    education_mode: Optional[bool] = None


class SyncConfigUpdate(BaseModel):
    batch_size: Optional[int] = None
    repair_batch_size: Optional[int] = None
    amount_batch_cap: Optional[int] = None
    categories: Optional[List[str]] = None
    diagnostic_voucher_number: Optional[str] = None


class ConfigUpdateRequest(BaseModel):
    tally: Optional[TallyConfigUpdate] = None
    sync: Optional[SyncConfigUpdate] = None
