"""
Reconciliation Models
Results of the relationship repair and amount recalculation passes
"""

from typing import Any, Dict, Optional
from pydantic import BaseModel, Field


class RepairCounts(BaseModel):
    total: int = 0
    fixed: int = 0
    strategy: str = "voucher_number"


class RepairResult(BaseModel):
    accounting: RepairCounts = Field(default_factory=RepairCounts)
    inventory: RepairCounts = Field(default_factory=RepairCounts)
    diagnostics: Optional[Dict[str, Any]] = None


class AmountRecalcResult(BaseModel):
    vouchers_processed: int = 0
    vouchers_updated: int = 0
    failed: int = 0
