"""
Tally Controller
Direct calls to the Tally gateway: connectivity test and voucher push
"""

from fastapi import APIRouter

from ..models.transaction import TallyImportResult, VoucherImportRequest
from ..services.tally_service import tally_service
from ..utils.logger import logger

router = APIRouter()


@router.post("/test")
async def test_tally_connection():
    """Test Tally connection"""
    return await tally_service.test_connection()


@router.post("/vouchers", response_model=TallyImportResult)
async def push_voucher(voucher: VoucherImportRequest):
    """Create a voucher in Tally"""
    logger.info(f"Pushing {voucher.voucher_type} voucher with {len(voucher.ledger_entries)} ledger entries")
    return await tally_service.import_voucher(voucher)
