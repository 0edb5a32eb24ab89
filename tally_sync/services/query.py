"""
Table Query Module
Chainable, tenant-aware query interface over DatabaseService:
equality and range filters, OR-combined tenant/global-default scope,
range pagination and ordering.

    rows = await (
        database_service.table("trn_accounting")
        .select("guid, voucher_number, voucher_guid")
        .tenant(scope)
        .not_empty("voucher_number")
        .order("guid")
        .range(0, 999)
        .fetch()
    )
"""

import re
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Tuple

from ..models.tenant import TenantScope

if TYPE_CHECKING:
    from .database_service import DatabaseService

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def quote_identifier(name: str) -> str:
    """Validate a table/column name before it is interpolated into SQL"""
    name = name.strip()
    if not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid identifier: {name!r}")
    return name


class TableQuery:
    """Filters accumulate; fetch/count/update/delete execute"""

    def __init__(self, db: "DatabaseService", table: str):
        self._db = db
        self.table = quote_identifier(table)
        self._columns = "*"
        self._conditions: List[str] = []
        self._params: List[Any] = []
        self._order_by: List[str] = []
        self._limit: Optional[int] = None
        self._offset: int = 0

    def select(self, columns: str = "*") -> "TableQuery":
        if columns.strip() == "*":
            self._columns = "*"
        else:
            self._columns = ", ".join(quote_identifier(col) for col in columns.split(","))
        return self

    def _add(self, condition: str, *params: Any) -> "TableQuery":
        self._conditions.append(condition)
        self._params.extend(params)
        return self

    def eq(self, column: str, value: Any) -> "TableQuery":
        if value is None:
            return self._add(f"{quote_identifier(column)} IS NULL")
        return self._add(f"{quote_identifier(column)} = ?", value)

    def neq(self, column: str, value: Any) -> "TableQuery":
        return self._add(f"{quote_identifier(column)} != ?", value)

    def not_empty(self, column: str) -> "TableQuery":
        col = quote_identifier(column)
        return self._add(f"{col} IS NOT NULL AND {col} != ''")

    def gt(self, column: str, value: Any) -> "TableQuery":
        return self._add(f"{quote_identifier(column)} > ?", value)

    def gte(self, column: str, value: Any) -> "TableQuery":
        return self._add(f"{quote_identifier(column)} >= ?", value)

    def lte(self, column: str, value: Any) -> "TableQuery":
        return self._add(f"{quote_identifier(column)} <= ?", value)

    def like(self, column: str, pattern: str) -> "TableQuery":
        return self._add(f"{quote_identifier(column)} LIKE ?", pattern)

    def in_(self, column: str, values: Sequence[Any]) -> "TableQuery":
        if not values:
            return self._add("0 = 1")
        placeholders = ", ".join("?" for _ in values)
        return self._add(f"{quote_identifier(column)} IN ({placeholders})", *values)

    def tenant(self, scope: TenantScope, include_global: bool = False) -> "TableQuery":
        """Scope to one tenant; include_global also admits rows with no tenant (shared defaults)"""
        if include_global:
            return self._add(
                "((company_id = ? AND division_id = ?) OR (company_id IS NULL AND division_id IS NULL))",
                scope.company_id, scope.division_id
            )
        return self._add("company_id = ? AND division_id = ?", scope.company_id, scope.division_id)

    def order(self, column: str, desc: bool = False) -> "TableQuery":
        """Sort by column; each further call adds a tiebreaker"""
        self._order_by.append(f"{quote_identifier(column)} {'DESC' if desc else 'ASC'}")
        return self

    def range(self, start: int, end: int) -> "TableQuery":
        """Inclusive row window [start, end]"""
        self._offset = max(0, start)
        self._limit = max(0, end - start + 1)
        return self

    def limit(self, count: int) -> "TableQuery":
        self._limit = count
        return self

    def _where(self) -> str:
        if not self._conditions:
            return ""
        return " WHERE " + " AND ".join(f"({c})" for c in self._conditions)

    def to_select_sql(self) -> Tuple[str, Tuple[Any, ...]]:
        sql = f"SELECT {self._columns} FROM {self.table}{self._where()}"
        if self._order_by:
            sql += f" ORDER BY {', '.join(self._order_by)}"
        if self._limit is not None:
            sql += f" LIMIT {int(self._limit)} OFFSET {int(self._offset)}"
        elif self._offset:
            sql += f" LIMIT -1 OFFSET {int(self._offset)}"
        return sql, tuple(self._params)

    async def fetch(self) -> List[Dict[str, Any]]:
        sql, params = self.to_select_sql()
        return await self._db.fetch_all(sql, params)

    async def fetch_one(self) -> Optional[Dict[str, Any]]:
        self._limit = 1
        rows = await self.fetch()
        return rows[0] if rows else None

    async def count(self) -> int:
        sql = f"SELECT COUNT(*) FROM {self.table}{self._where()}"
        return await self._db.fetch_scalar(sql, tuple(self._params)) or 0

    def _require_filter(self, action: str) -> None:
        if not self._conditions:
            raise ValueError(f"Refusing unfiltered {action} on {self.table}")

    async def update(self, values: Dict[str, Any]) -> int:
        self._require_filter("update")
        assignments = ", ".join(f"{quote_identifier(col)} = ?" for col in values)
        sql = f"UPDATE {self.table} SET {assignments}{self._where()}"
        return await self._db.execute(sql, tuple(values.values()) + tuple(self._params))

    async def delete(self) -> int:
        self._require_filter("delete")
        sql = f"DELETE FROM {self.table}{self._where()}"
        return await self._db.execute(sql, tuple(self._params))
