"""
Config Controller
Handles configuration API endpoints
"""

from fastapi import APIRouter, HTTPException

from ..config import config, save_config
from ..models.config import ConfigUpdateRequest
from ..services.export_config import export_definitions
from ..utils.constants import ErrorCode
from ..utils.logger import logger
from ..views.json_view import JsonView

router = APIRouter()


@router.get("")
async def get_config():
    """Get current configuration (secrets masked)"""
    data = config.model_dump()
    if data["api"]["ingest_api_key"]:
        data["api"]["ingest_api_key"] = "********"
    return data


@router.put("")
async def update_config(update: ConfigUpdateRequest):
    """Update tally/sync settings and persist them"""
    if update.sync and update.sync.categories:
        unknown = [c for c in update.sync.categories if c not in export_definitions.names()]
        if unknown:
            raise HTTPException(
                status_code=400,
                detail=JsonView.error(ErrorCode.VALIDATION_ERROR, f"Unknown categories: {', '.join(unknown)}")
            )

    for section_name in ("tally", "sync"):
        section_update = getattr(update, section_name)
        if section_update is None:
            continue
        section = getattr(config, section_name)
        for key, value in section_update.model_dump(exclude_none=True).items():
            setattr(section, key, value)

    try:
        save_config(config)
    except OSError as e:
        logger.error(f"Failed to save config: {e}")
        raise HTTPException(status_code=500, detail=JsonView.error(ErrorCode.UNKNOWN_ERROR, str(e)))

    logger.info("Configuration updated")
    return {"status": "success", "message": "Configuration updated"}
