"""
Export Definitions Module
Loads tally-export-config.yaml: which report to request per category,
how to cut the response into records and which fields to keep
"""

from pathlib import Path
from typing import Dict, List, Literal, Optional

import yaml
from pydantic import BaseModel

from ..utils.logger import logger

EXPORT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "tally-export-config.yaml"


class FieldDefinition(BaseModel):
    name: str
    field: str
    type: Literal["text", "number", "logical", "date", "quantity"] = "text"
    attribute: Optional[str] = None
    default: Optional[str] = None


class ChildDefinition(BaseModel):
    table: str
    record_tags: List[str]
    guid_token: str
    fields: List[FieldDefinition]


class CategoryDefinition(BaseModel):
    category: str
    report: str
    record_tag: str
    table: str
    date_range: bool = False
    fields: List[FieldDefinition]
    children: List[ChildDefinition] = []

    @property
    def tables(self) -> List[str]:
        """Target tables, parent first"""
        return [self.table] + [child.table for child in self.children]


class ExportDefinitions:
    """Category definitions keyed by category name, in file order"""

    def __init__(self, config_path: Path = EXPORT_CONFIG_PATH):
        self.categories: Dict[str, CategoryDefinition] = {}
        self._load(config_path)

    def _load(self, config_path: Path) -> None:
        with open(config_path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

        for section in ("master", "transaction"):
            for item in raw.get(section, []):
                definition = CategoryDefinition(**item)
                self.categories[definition.category] = definition

        logger.debug(f"Loaded {len(self.categories)} export definitions from {config_path.name}")

    def get(self, category: str) -> CategoryDefinition:
        if category not in self.categories:
            raise ValueError(f"Unknown Tally category: {category}")
        return self.categories[category]

    def names(self) -> List[str]:
        return list(self.categories)


export_definitions = ExportDefinitions()
