"""
Data Controller
Tenant-scoped data query endpoints
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from ..models.master import HierarchyNode
from ..models.response import PaginatedResponse
from ..models.tenant import TenantScope
from ..models.transaction import AccountingEntry, InventoryEntry, VoucherDetail
from ..services.database_service import database_service
from ..services.hierarchy_service import hierarchy_service
from ..utils.constants import ErrorCode
from ..utils.exceptions import PersistenceError
from ..utils.logger import logger
from ..views.json_view import JsonView
from .dependencies import tenant_scope

router = APIRouter()


def _database_error(e: Exception) -> HTTPException:
    logger.error(f"Data query failed: {e}")
    return HTTPException(status_code=500, detail=JsonView.error(ErrorCode.DATABASE_ERROR, str(e)))


async def _list_masters(
    table: str,
    tenant: TenantScope,
    limit: int,
    offset: int,
    parent: Optional[str] = None,
    search: Optional[str] = None,
    include_global: bool = False
) -> dict:
    def build():
        query = database_service.table(table).tenant(tenant, include_global=include_global)
        if parent:
            query = query.eq("parent", parent)
        if search:
            query = query.like("name", f"%{search}%")
        return query

    try:
        ordered = build().order("name").order("guid").order("company_id")
        data = await ordered.range(offset, offset + limit - 1).fetch()
        total = await build().count()
    except PersistenceError as e:
        raise _database_error(e)
    return JsonView.paginated(data, total, limit, offset)


@router.get("/groups", response_model=PaginatedResponse)
async def get_groups(
    tenant: TenantScope = Depends(tenant_scope),
    parent: Optional[str] = None,
    search: Optional[str] = None,
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0)
):
    """Get groups"""
    return await _list_masters("mst_group", tenant, limit, offset, parent, search)


@router.get("/ledgers", response_model=PaginatedResponse)
async def get_ledgers(
    tenant: TenantScope = Depends(tenant_scope),
    parent: Optional[str] = None,
    search: Optional[str] = None,
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0)
):
    """Get ledgers"""
    return await _list_masters("mst_ledger", tenant, limit, offset, parent, search)


@router.get("/stock-items", response_model=PaginatedResponse)
async def get_stock_items(
    tenant: TenantScope = Depends(tenant_scope),
    parent: Optional[str] = None,
    search: Optional[str] = None,
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0)
):
    """Get stock items"""
    return await _list_masters("mst_stock_item", tenant, limit, offset, parent, search)


@router.get("/voucher-types", response_model=PaginatedResponse)
async def get_voucher_types(
    tenant: TenantScope = Depends(tenant_scope),
    parent: Optional[str] = None,
    search: Optional[str] = None,
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0)
):
    """Get voucher types, including shared defaults"""
    return await _list_masters("mst_vouchertype", tenant, limit, offset, parent, search, include_global=True)


@router.get("/groups/tree", response_model=List[HierarchyNode])
async def get_group_tree(tenant: TenantScope = Depends(tenant_scope)):
    """Group hierarchy"""
    try:
        return await hierarchy_service.tree("mst_group", tenant)
    except PersistenceError as e:
        raise _database_error(e)


@router.get("/voucher-types/tree", response_model=List[HierarchyNode])
async def get_voucher_type_tree(tenant: TenantScope = Depends(tenant_scope)):
    """Voucher type hierarchy, including shared defaults"""
    try:
        return await hierarchy_service.tree("mst_vouchertype", tenant, include_global=True)
    except PersistenceError as e:
        raise _database_error(e)


@router.get("/vouchers", response_model=PaginatedResponse)
async def get_vouchers(
    tenant: TenantScope = Depends(tenant_scope),
    voucher_type: Optional[str] = None,
    from_date: Optional[str] = None,
    to_date: Optional[str] = None,
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0)
):
    """Get vouchers, newest first"""
    def build():
        query = database_service.table("trn_voucher").tenant(tenant)
        if voucher_type:
            query = query.eq("voucher_type", voucher_type)
        if from_date:
            query = query.gte("date", from_date)
        if to_date:
            query = query.lte("date", to_date)
        return query

    try:
        data = await build().order("date", desc=True).order("guid").range(offset, offset + limit - 1).fetch()
        total = await build().count()
    except PersistenceError as e:
        raise _database_error(e)
    return JsonView.paginated(data, total, limit, offset)


@router.get("/vouchers/{guid}", response_model=VoucherDetail)
async def get_voucher(guid: str, tenant: TenantScope = Depends(tenant_scope)):
    """One voucher with its accounting and inventory entries"""
    try:
        voucher = await database_service.table("trn_voucher").tenant(tenant).eq("guid", guid).fetch_one()
        if voucher is None:
            raise HTTPException(status_code=404, detail=JsonView.error(ErrorCode.NOT_FOUND, "Voucher not found"))
        accounting = await (
            database_service.table("trn_accounting").tenant(tenant).eq("voucher_guid", guid).order("guid").fetch()
        )
        inventory = await (
            database_service.table("trn_inventory").tenant(tenant).eq("voucher_guid", guid).order("guid").fetch()
        )
    except PersistenceError as e:
        raise _database_error(e)

    return VoucherDetail(
        **voucher,
        accounting_entries=[AccountingEntry(**row) for row in accounting],
        inventory_entries=[InventoryEntry(**row) for row in inventory]
    )


@router.get("/counts")
async def get_table_counts(tenant: TenantScope = Depends(tenant_scope)):
    """Row count per table for a tenant"""
    counts = await database_service.get_table_counts(tenant)
    return {"tenant": tenant.model_dump(), "counts": counts, "total": sum(counts.values())}
