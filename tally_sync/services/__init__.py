# Services Package
# Business Logic Layer

from .database_service import DatabaseService
from .tally_service import TallyService
from .xml_builder import XMLBuilder
from .xml_extractor import XMLExtractor
from .transformer import RecordTransformer
from .bulk_loader import BulkLoaderService
from .repair_service import RelationshipRepairService
from .amount_service import AmountRecalcService
from .hierarchy_service import HierarchyService
from .sync_service import SyncService
from .scheduler_service import SchedulerService
from .health_service import HealthService

__all__ = [
    "DatabaseService",
    "TallyService",
    "XMLBuilder",
    "XMLExtractor",
    "RecordTransformer",
    "BulkLoaderService",
    "RelationshipRepairService",
    "AmountRecalcService",
    "HierarchyService",
    "SyncService",
    "SchedulerService",
    "HealthService"
]
