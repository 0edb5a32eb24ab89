"""
Response Models
Pydantic models for API responses
"""

from typing import Any, Dict, List
from pydantic import BaseModel


class PaginatedResponse(BaseModel):
    total: int
    limit: int
    offset: int
    count: int
    data: List[Dict[str, Any]]


class SyncStartedResponse(BaseModel):
    status: str
    session_id: str
    message: str
