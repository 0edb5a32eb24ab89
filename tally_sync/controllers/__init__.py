# Controllers Package
# MVC Controller Layer

from .sync_controller import router as sync_router
from .ingest_controller import router as ingest_router
from .data_controller import router as data_router
from .tally_controller import router as tally_router
from .config_controller import router as config_router
from .health_controller import router as health_router

__all__ = [
    "sync_router",
    "ingest_router",
    "data_router",
    "tally_router",
    "config_router",
    "health_router"
]
