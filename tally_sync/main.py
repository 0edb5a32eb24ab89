"""
Tally Sync
Main Application Entry Point
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import config
from .utils.constants import APP_NAME, APP_VERSION
from .utils.logger import setup_logger, logger
from .controllers import (
    sync_router, ingest_router, data_router, tally_router, config_router, health_router
)
from .services.database_service import database_service
from .services.scheduler_service import scheduler_service


setup_logger(
    level=config.logging.level,
    log_file=config.logging.file,
    max_size=config.logging.max_size,
    backup_count=config.logging.backup_count,
    console=config.logging.console,
    colorize=config.logging.colorize,
    serialize=config.logging.serialize
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    logger.info(f"{APP_NAME} starting...")
    app.state.sync_sessions = {}
    await database_service.connect()
    await database_service.create_tables()
    if config.scheduler.enabled:
        scheduler_service.start()
    logger.info(f"API running on http://{config.api.host}:{config.api.port}")
    yield
    scheduler_service.stop()
    await database_service.disconnect()
    logger.info(f"{APP_NAME} shutting down...")


app = FastAPI(
    title=APP_NAME,
    description="Sync Tally ERP data into a tenant-scoped store and reconcile vouchers",
    version=APP_VERSION,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.api.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(sync_router, prefix="/api/sync", tags=["Sync"])
app.include_router(ingest_router, prefix="/api/ingest", tags=["Ingest"])
app.include_router(data_router, prefix="/api/data", tags=["Data"])
app.include_router(tally_router, prefix="/api/tally", tags=["Tally"])
app.include_router(config_router, prefix="/api/config", tags=["Config"])
app.include_router(health_router, prefix="/api/health", tags=["Health"])


@app.get("/")
async def root():
    return {
        "name": APP_NAME,
        "version": APP_VERSION,
        "status": "running",
        "docs": "/docs"
    }


@app.get("/api/info")
async def info():
    """System information"""
    return {
        "name": APP_NAME,
        "version": APP_VERSION,
        "tally": {"url": config.tally.endpoint, "company": config.tally.company},
        "database": {"path": database_service.db_path},
        "categories": config.sync.categories
    }
