"""
Transaction Models
Pydantic models for vouchers and their line items
"""

from typing import List, Optional
from pydantic import BaseModel, Field


class AccountingEntry(BaseModel):
    guid: str
    voucher_guid: Optional[str] = None
    voucher_number: Optional[str] = None
    voucher_type: Optional[str] = None
    ledger: Optional[str] = ""
    amount: Optional[float] = 0.0
    is_deemed_positive: Optional[int] = 0
    is_party_ledger: Optional[int] = 0
    cost_centre: Optional[str] = None
    cost_category: Optional[str] = None


class InventoryEntry(BaseModel):
    guid: str
    voucher_guid: Optional[str] = None
    voucher_number: Optional[str] = None
    voucher_type: Optional[str] = None
    stock_item: Optional[str] = ""
    quantity: Optional[float] = 0.0
    rate: Optional[float] = 0.0
    amount: Optional[float] = 0.0
    godown: Optional[str] = None
    batch_name: Optional[str] = None


class Voucher(BaseModel):
    guid: str
    voucher_number: Optional[str] = None
    voucher_type: Optional[str] = ""
    date: Optional[str] = None
    party_name: Optional[str] = None
    narration: Optional[str] = None
    total_amount: Optional[float] = 0.0
    final_amount: Optional[float] = 0.0


class VoucherDetail(Voucher):
    accounting_entries: List[AccountingEntry] = []
    inventory_entries: List[InventoryEntry] = []


# Outbound (push to Tally)

class LedgerLine(BaseModel):
    ledger_name: str = Field(min_length=1)
    amount: float
    is_deemed_positive: bool = False
    is_party_ledger: bool = False


class InventoryLine(BaseModel):
    stock_item_name: str = Field(min_length=1)
    quantity: float
    rate: float
    amount: float
    unit: str = "Nos"
    godown_name: str = "Main Location"


class VoucherImportRequest(BaseModel):
    voucher_type: str = Field(min_length=1)
    date: Optional[str] = None
    voucher_number: Optional[str] = None
    party_ledger_name: Optional[str] = None
    narration: str = ""
    ledger_entries: List[LedgerLine] = Field(min_length=1)
    inventory_entries: List[InventoryLine] = []


class TallyImportResult(BaseModel):
    success: bool
    status_code: int
    created: int = 0
    altered: int = 0
    errors: int = 0
    line_error: Optional[str] = None
