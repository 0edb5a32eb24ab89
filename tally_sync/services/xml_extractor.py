"""
XML Extractor Module
====================
Cuts a Tally XML response into records and pulls named leaf fields out
of each record by pattern matching.

Tally responses are frequently not well-formed (stray control characters,
unescaped ampersands in ledger names, truncated bodies when the gateway
times out), so no XML parser is involved: every occurrence of
<TAG ...>...</TAG> is a record, and each field is the first
<FIELD ...>value</FIELD> inside that record's text.

DEFAULTS:
--------
- text      -> definition default, else ''
- number    -> 0.0 for missing or non-numeric values
- quantity  -> leading number of values like ' 10 Nos'
- logical   -> 1/0 from Yes/No
- date      -> ISO date or None

A document that cannot be cut into records yields an empty list. This
module never raises on bad input.
"""

import re
from html import unescape
from typing import Any, Dict, List, Optional, Tuple

from ..utils.logger import logger
from ..utils.helpers import (
    parse_tally_amount, parse_tally_boolean, parse_tally_date, parse_tally_quantity
)
from .export_config import CategoryDefinition, FieldDefinition

CHILDREN_KEY = "_children"


class XMLExtractor:
    """Regex-based record and field extraction"""

    def __init__(self):
        self._record_patterns: Dict[str, re.Pattern] = {}
        self._field_patterns: Dict[str, re.Pattern] = {}

    def _record_pattern(self, tag: str) -> re.Pattern:
        pattern = self._record_patterns.get(tag)
        if pattern is None:
            # exact tag: <LEDGER ...> must not match <LEDGERENTRIES.LIST>;
            # a self-closing <LEDGER .../> has no body and is skipped
            pattern = re.compile(
                rf"<{re.escape(tag)}(\s[^>]*?)?(?<!/)>(.*?)</{re.escape(tag)}>",
                re.DOTALL
            )
            self._record_patterns[tag] = pattern
        return pattern

    def _field_pattern(self, tag: str) -> re.Pattern:
        pattern = self._field_patterns.get(tag)
        if pattern is None:
            pattern = re.compile(rf"<{re.escape(tag)}(?:\s[^>]*)?>([^<]*)</{re.escape(tag)}>")
            self._field_patterns[tag] = pattern
        return pattern

    def find_records(self, xml_text: str, tag: str) -> List[Tuple[str, str]]:
        """Return (opening-tag attributes, body) for every <tag> block in document order"""
        if not xml_text:
            return []
        try:
            return [
                (match.group(1) or "", match.group(2))
                for match in self._record_pattern(tag).finditer(xml_text)
            ]
        except (TypeError, re.error) as e:
            logger.warning(f"Could not cut <{tag}> records from response: {e}")
            return []

    def find_field(self, body: str, tag: str) -> Optional[str]:
        """First <tag> value inside body, unescaped and stripped, or None"""
        match = self._field_pattern(tag).search(body)
        if not match:
            return None
        return unescape(match.group(1)).strip()

    @staticmethod
    def find_attribute(attributes: str, name: str) -> Optional[str]:
        match = re.search(rf'\b{re.escape(name)}="([^"]*)"', attributes or "")
        if not match:
            return None
        return unescape(match.group(1)).strip()

    def _read_field(self, attributes: str, body: str, field: FieldDefinition) -> Any:
        raw = self.find_field(body, field.field)
        if not raw and field.attribute:
            raw = self.find_attribute(attributes, field.attribute) or raw

        if field.type == "number":
            return parse_tally_amount(raw if raw else field.default)
        if field.type == "quantity":
            return parse_tally_quantity(raw if raw else field.default)
        if field.type == "logical":
            return parse_tally_boolean(raw if raw else field.default)
        if field.type == "date":
            return parse_tally_date(raw) if raw else None
        if raw:
            return raw
        return field.default if field.default is not None else ""

    def _read_record(self, attributes: str, body: str, fields: List[FieldDefinition]) -> Dict[str, Any]:
        return {field.name: self._read_field(attributes, body, field) for field in fields}

    def extract(self, xml_text: str, definition: CategoryDefinition) -> List[Dict[str, Any]]:
        """
        Extract typed field maps for every record of a category.

        Voucher records carry their line items under CHILDREN_KEY as
        {child_table: [field maps]}.
        """
        records: List[Dict[str, Any]] = []
        try:
            for attributes, body in self.find_records(xml_text, definition.record_tag):
                record = self._read_record(attributes, body, definition.fields)
                if definition.children:
                    record[CHILDREN_KEY] = {
                        child.table: self._extract_children(body, child.record_tags, child.fields)
                        for child in definition.children
                    }
                records.append(record)
        except Exception as e:
            logger.warning(f"Extraction of {definition.category} degraded to zero records: {e}")
            return []

        logger.info(f"Extracted {len(records)} {definition.record_tag} records")
        return records

    def _extract_children(self, body: str, tags: List[str], fields: List[FieldDefinition]) -> List[Dict[str, Any]]:
        # Tally emits either the ALL* list or the short list depending on voucher view
        for tag in tags:
            blocks = self.find_records(body, tag)
            if blocks:
                return [self._read_record(attributes, inner, fields) for attributes, inner in blocks]
        return []


# Global extractor instance
xml_extractor = XMLExtractor()
