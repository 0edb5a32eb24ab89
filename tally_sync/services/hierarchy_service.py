"""
Hierarchy Service
Rebuilds Group and VoucherType trees from flat name/parent rows.

Parents are referenced by name. A parent that is empty, unknown, or the
record's own name makes the record a root. A parent link that would
close a cycle is dropped (the record becomes a root) so the result is
always a finite forest.
"""

from typing import Any, Dict, List, Optional

from ..models.master import HierarchyNode
from ..models.tenant import TenantScope
from ..utils.logger import logger
from .database_service import DatabaseService, database_service


class HierarchyService:
    """Name-based tree reconstruction"""

    def __init__(self, db: DatabaseService = None):
        self.db = db or database_service

    @staticmethod
    def _closes_cycle(name: str, parent: str, parent_of: Dict[str, str]) -> bool:
        visited = set()
        current: Optional[str] = parent
        while current is not None and current not in visited:
            if current == name:
                return True
            visited.add(current)
            current = parent_of.get(current)
        return False

    def build(self, records: List[Dict[str, Any]]) -> List[HierarchyNode]:
        """Forest of HierarchyNode from rows carrying name / parent / guid"""
        nodes: Dict[str, Dict[str, Any]] = {}
        for record in records:
            name = (record.get("name") or "").strip()
            if not name:
                continue
            if name in nodes:
                logger.debug(f"Duplicate hierarchy name '{name}' ignored")
                continue
            nodes[name] = {
                "guid": record.get("guid"),
                "parent": (record.get("parent") or "").strip(),
                "children": []
            }

        parent_of: Dict[str, str] = {}
        for name, node in nodes.items():
            parent = node["parent"]
            if not parent or parent == name or parent not in nodes:
                continue
            if self._closes_cycle(name, parent, parent_of):
                logger.warning(f"Hierarchy cycle at '{name}' -> '{parent}', treating '{name}' as a root")
                continue
            parent_of[name] = parent

        for name in nodes:
            if name in parent_of:
                nodes[parent_of[name]]["children"].append(name)

        def to_node(name: str, depth: int) -> HierarchyNode:
            node = nodes[name]
            return HierarchyNode(
                name=name,
                guid=node["guid"],
                parent=node["parent"] or None,
                depth=depth,
                children=[to_node(child, depth + 1) for child in node["children"]]
            )

        return [to_node(name, 0) for name in nodes if name not in parent_of]

    async def tree(self, table: str, tenant: TenantScope, include_global: bool = False) -> List[HierarchyNode]:
        """Load name/parent rows of a master table and build the forest"""
        rows = await (
            self.db.table(table)
            .select("guid, name, parent")
            .tenant(tenant, include_global=include_global)
            .order("name")
            .fetch()
        )
        return self.build(rows)


# Global service instance
hierarchy_service = HierarchyService()
