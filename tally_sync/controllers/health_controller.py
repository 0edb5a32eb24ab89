"""
Health Controller
Handles health check API endpoints
"""

from fastapi import APIRouter

from ..models.health import HealthCheckResponse
from ..services.health_service import health_service

router = APIRouter()


@router.get("", response_model=HealthCheckResponse)
async def health_check():
    """Complete health check"""
    return await health_service.check_all()


@router.get("/tally")
async def tally_health():
    """Tally connection health check"""
    return await health_service.check_tally()


@router.get("/database")
async def database_health():
    """Database health check"""
    return await health_service.check_database()
