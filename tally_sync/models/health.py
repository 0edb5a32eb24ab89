"""
Health Models
Pydantic models for health checks
"""

from typing import Dict
from pydantic import BaseModel, ConfigDict


class ComponentHealth(BaseModel):
    model_config = ConfigDict(extra="allow")

    status: str
    message: str = ""


class HealthCheckResponse(BaseModel):
    status: str
    timestamp: str
    components: Dict[str, ComponentHealth]
