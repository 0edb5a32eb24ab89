"""
Health Service Module
Handles health checks for system components
"""

from datetime import datetime
from typing import Any, Dict

from ..config import config
from ..utils.constants import HealthStatus
from ..utils.exceptions import PersistenceError
from .database_service import DatabaseService, database_service
from .tally_service import TallyService, tally_service


class HealthService:
    """Service for health monitoring"""

    def __init__(self, db: DatabaseService = None, tally: TallyService = None):
        self.db = db or database_service
        self.tally = tally or tally_service

    async def check_all(self) -> Dict[str, Any]:
        """Check health of all components"""
        tally_health = await self.check_tally()
        database_health = await self.check_database()

        statuses = {tally_health["status"], database_health["status"]}
        if statuses == {HealthStatus.HEALTHY}:
            overall_status = HealthStatus.HEALTHY
        elif statuses == {HealthStatus.UNHEALTHY}:
            overall_status = HealthStatus.UNHEALTHY
        else:
            overall_status = HealthStatus.DEGRADED

        return {
            "status": overall_status,
            "timestamp": datetime.now().isoformat(),
            "components": {
                "tally": tally_health,
                "database": database_health
            }
        }

    async def check_tally(self) -> Dict[str, Any]:
        """Check Tally connection health"""
        result = await self.tally.test_connection(timeout=config.health.tally_timeout)
        return {
            "status": HealthStatus.HEALTHY if result.get("connected") else HealthStatus.UNHEALTHY,
            "url": result.get("url"),
            "message": "Connected" if result.get("connected") else result.get("error", "Connection failed")
        }

    async def check_database(self) -> Dict[str, Any]:
        """Check database health"""
        try:
            await self.db.connect()
            if not await self.db.ping():
                raise PersistenceError("Database did not answer SELECT 1")
            counts = await self.db.get_table_counts()
            return {
                "status": HealthStatus.HEALTHY,
                "path": self.db.db_path,
                "size_bytes": await self.db.get_database_size(),
                "total_rows": sum(counts.values()),
                "message": "Connected"
            }
        except (PersistenceError, OSError) as e:
            return {
                "status": HealthStatus.UNHEALTHY,
                "path": self.db.db_path,
                "message": str(e)
            }


# Global service instance
health_service = HealthService()
