"""
Bulk Loader Module
==================
Writes transformed rows into one tenant-scoped table.

OPERATIONS:
----------
- insert (alias append): row-by-row; a failing row is recorded and the
  rest continue.
- upsert: batched INSERT .. ON CONFLICT(company_id, division_id, guid)
  DO UPDATE of every non-key column. A failing batch is replayed row by
  row so only the offending rows are counted as failed.
- replace: delete the tenant's rows, then insert. Delete and inserts
  share one transaction, so an interrupted replace leaves the previous
  rows in place.

Every row is stamped with the caller's tenant before writing, whatever
company/division it arrived with. Writes to one (tenant, table) pair are
serialized by a per-key asyncio.Lock, so two replaces never interleave.
The lock entry is dropped once no load holds or waits for it.

Failures never escape: callers get a LoadResult with counts and the
first error messages.
"""

import json
import sqlite3
from typing import Any, Dict, List, Tuple

from ..config import config
from ..models.ingest import LoadResult
from ..models.tenant import TenantScope
from ..utils.logger import logger
from ..utils.decorators import timed
from ..utils.exceptions import PersistenceError
from ..utils.helpers import chunk_list
from ..utils.locks import KeyedLock
from ..utils.constants import DATA_TABLES, LoadOperation
from .database_service import DatabaseService, database_service
from .query import quote_identifier

KEY_COLUMNS = ("company_id", "division_id", "guid")
MAX_REPORTED_ERRORS = 50


def _to_db_value(value: Any) -> Any:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return value


class BulkLoaderService:
    """Insert / upsert / replace rows for one tenant"""

    def __init__(self, db: DatabaseService = None):
        self.db = db or database_service
        self._locks = KeyedLock()

    @staticmethod
    def _record_error(result: LoadResult, row: Dict[str, Any], error: Exception) -> None:
        result.failed += 1
        if len(result.errors) < MAX_REPORTED_ERRORS:
            result.errors.append(f"{row.get('guid') or '<no guid>'}: {error}")

    @staticmethod
    def _insert_sql(table: str, columns: List[str], upsert: bool) -> str:
        placeholders = ", ".join("?" for _ in columns)
        sql = f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})"
        if upsert:
            updates = [f"{col} = excluded.{col}" for col in columns if col not in KEY_COLUMNS]
            if updates:
                sql += f" ON CONFLICT({', '.join(KEY_COLUMNS)}) DO UPDATE SET {', '.join(updates)}"
            else:
                sql += f" ON CONFLICT({', '.join(KEY_COLUMNS)}) DO NOTHING"
        return sql

    @timed
    async def load(
        self,
        table: str,
        operation: str,
        rows: List[Dict[str, Any]],
        tenant: TenantScope
    ) -> LoadResult:
        """Write rows into table for tenant and summarise the outcome"""
        operation = LoadOperation.INSERT if operation == LoadOperation.APPEND else operation
        result = LoadResult(table_name=table, operation=operation, total=len(rows))

        if table not in DATA_TABLES:
            result.failed = len(rows)
            result.errors.append(f"Unknown table: {table}")
            logger.warning(f"Rejected load into unknown table '{table}'")
            return result
        if operation not in (LoadOperation.INSERT, LoadOperation.UPSERT, LoadOperation.REPLACE):
            result.failed = len(rows)
            result.errors.append(f"Unsupported load operation: {operation}")
            logger.warning(f"Rejected unsupported load operation '{operation}' on '{table}'")
            return result

        stamped = [tenant.stamp(row) for row in rows]
        columns = list(dict.fromkeys(col for row in stamped for col in row))

        async with self._locks.hold((tenant.company_id, tenant.division_id, table)):
            try:
                for col in columns:
                    quote_identifier(col)
                if columns:
                    await self.db.ensure_columns(table, columns)

                if operation == LoadOperation.UPSERT:
                    await self._upsert(table, stamped, result)
                else:
                    await self._insert(table, stamped, result, replace=operation == LoadOperation.REPLACE, tenant=tenant)
            except (PersistenceError, ValueError) as e:
                logger.error(f"{operation} into {table} failed: {e}")
                result.processed = 0
                result.failed = len(rows)
                result.errors.append(str(e))

        logger.info(
            f"Loaded {table} [{tenant.key}] ({operation}): "
            f"{result.processed}/{result.total} rows, {result.failed} failed"
        )
        return result

    async def _insert(self, table: str, rows: List[Dict[str, Any]], result: LoadResult,
                      replace: bool, tenant: TenantScope) -> None:
        try:
            async with self.db.transaction() as conn:
                if replace:
                    cursor = await conn.execute(
                        f"DELETE FROM {table} WHERE company_id = ? AND division_id = ?",
                        (tenant.company_id, tenant.division_id)
                    )
                    result.deleted = cursor.rowcount
                for row in rows:
                    columns = list(row)
                    try:
                        await conn.execute(
                            self._insert_sql(table, columns, upsert=False),
                            tuple(_to_db_value(row[col]) for col in columns)
                        )
                        result.processed += 1
                    except sqlite3.Error as e:
                        self._record_error(result, row, PersistenceError.from_driver(e))
        except sqlite3.Error as e:
            raise PersistenceError.from_driver(e) from e

    async def _upsert(self, table: str, rows: List[Dict[str, Any]], result: LoadResult) -> None:
        # executemany needs one column list per statement
        groups: Dict[Tuple[str, ...], List[Dict[str, Any]]] = {}
        for row in rows:
            groups.setdefault(tuple(row), []).append(row)

        try:
            async with self.db.transaction() as conn:
                for columns, group_rows in groups.items():
                    sql = self._insert_sql(table, list(columns), upsert=True)
                    for batch in chunk_list(group_rows, max(1, config.sync.batch_size)):
                        params = [tuple(_to_db_value(row[col]) for col in columns) for row in batch]
                        try:
                            await conn.executemany(sql, params)
                            result.processed += len(batch)
                        except sqlite3.Error as batch_error:
                            logger.debug(f"Upsert batch into {table} failed ({batch_error}), replaying row by row")
                            for row, row_params in zip(batch, params):
                                try:
                                    await conn.execute(sql, row_params)
                                    result.processed += 1
                                except sqlite3.Error as e:
                                    self._record_error(result, row, PersistenceError.from_driver(e))
        except sqlite3.Error as e:
            raise PersistenceError.from_driver(e) from e


# Global service instance
bulk_loader_service = BulkLoaderService()
