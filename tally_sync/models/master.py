"""
Master Models
Pydantic models for master hierarchies
"""

from typing import List, Optional
from pydantic import BaseModel


class HierarchyNode(BaseModel):
    name: str
    guid: Optional[str] = None
    parent: Optional[str] = None
    depth: int = 0
    children: List["HierarchyNode"] = []


HierarchyNode.model_rebuild()
