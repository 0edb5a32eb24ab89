"""
Controller Dependencies
Shared FastAPI dependencies
"""

from fastapi import Query

from ..models.tenant import TenantScope


def tenant_scope(
    company_id: str = Query(..., min_length=1),
    division_id: str = Query(..., min_length=1)
) -> TenantScope:
    """Tenant taken from the company_id / division_id query parameters"""
    return TenantScope(company_id=company_id, division_id=division_id)
