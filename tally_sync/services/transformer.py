"""
Record Transformer Module
Turns extracted field maps into storage-ready rows: tenant stamping,
GUID synthesis, voucher line-item linkage and created_at.
"""

import itertools
import uuid
from typing import Any, Dict, List, Optional

from ..models.tenant import TenantScope
from ..utils.helpers import get_current_timestamp
from .export_config import CategoryDefinition
from .xml_extractor import CHILDREN_KEY


class RecordTransformer:
    """
    Row builder for a single sync run.

    Synthetic GUIDs are {category}-{run_token}-{seq}: the token is random
    per run and the sequence is a per-run counter, so two runs (or two
    records within one run) never collide.
    """

    def __init__(self, tenant: TenantScope, run_token: Optional[str] = None):
        self.tenant = tenant
        self.run_token = run_token or uuid.uuid4().hex[:12]
        self.created_at = get_current_timestamp()
        self._sequence = itertools.count(1)

    def synthesize_guid(self, category: str) -> str:
        return f"{category}-{self.run_token}-{next(self._sequence)}"

    def _finish(self, row: Dict[str, Any]) -> Dict[str, Any]:
        row = self.tenant.stamp(row)
        row["created_at"] = self.created_at
        return row

    def transform(self, record: Dict[str, Any], definition: CategoryDefinition) -> Dict[str, List[Dict[str, Any]]]:
        """Rows for one record, keyed by target table (parent first)"""
        fields = {key: value for key, value in record.items() if key != CHILDREN_KEY}
        if not fields.get("guid"):
            fields["guid"] = self.synthesize_guid(definition.category)

        rows: Dict[str, List[Dict[str, Any]]] = {table: [] for table in definition.tables}
        rows[definition.table].append(self._finish(fields))

        children = record.get(CHILDREN_KEY) or {}
        for child in definition.children:
            for index, entry in enumerate(children.get(child.table, []), start=1):
                child_row = dict(entry)
                child_row["guid"] = f"{fields['guid']}-{child.guid_token}-{index}"
                child_row["voucher_guid"] = fields["guid"]
                child_row["voucher_number"] = fields.get("voucher_number", "")
                child_row["voucher_type"] = fields.get("voucher_type", "")
                rows[child.table].append(self._finish(child_row))

        return rows

    def transform_all(self, records: List[Dict[str, Any]], definition: CategoryDefinition) -> Dict[str, List[Dict[str, Any]]]:
        """Rows for every record of a category, keyed by target table"""
        combined: Dict[str, List[Dict[str, Any]]] = {table: [] for table in definition.tables}
        for record in records:
            for table, rows in self.transform(record, definition).items():
                combined[table].extend(rows)
        return combined
