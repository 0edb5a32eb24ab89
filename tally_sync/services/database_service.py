"""
Database Service Module
=======================
Tenant-scoped SQLite storage via aiosqlite.

TENANCY:
-------
Every data table carries company_id + division_id and uses
(company_id, division_id, guid) as its primary key, so the same Tally
GUID can exist once per tenant. Queries go through TableQuery.tenant().
Rows with NULL company/division are shared defaults (e.g. stock voucher
types) and are only visible through tenant(..., include_global=True).

ERRORS:
------
Driver errors surface as PersistenceError with a SQLSTATE-style code
(42703 undefined column, 23505 unique violation, ...).

WRITES AND READS:
----------------
Writes go through one writer connection. execute/execute_many commit
immediately; transaction() holds the write lock for a multi statement
unit (used by the bulk loader's replace) and commits or rolls back as a
whole.

Reads (fetch_all and everything built on it) use a second query_only
connection, so under WAL they see the last committed state and never the
inside of an open transaction. An in-memory database cannot be shared
between connections; there reads fall back to the writer connection.
"""

import asyncio
import sqlite3
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

import aiosqlite

from ..config import config
from ..models.tenant import TenantScope
from ..utils.logger import logger
from ..utils.decorators import timed
from ..utils.exceptions import PersistenceError
from ..utils.constants import DATA_TABLES
from .query import TableQuery, quote_identifier

TENANT_COLUMNS = [("company_id", "TEXT"), ("division_id", "TEXT")]
TRAILING_COLUMNS = [("created_at", "TEXT")]

# Column layout per data table (guid and tenant columns are added for every table)
TABLE_SCHEMAS: Dict[str, List[Tuple[str, str]]] = {
    "mst_group": [
        ("name", "TEXT NOT NULL DEFAULT ''"), ("parent", "TEXT DEFAULT ''"),
        ("primary_group", "TEXT DEFAULT ''"), ("is_revenue", "INTEGER DEFAULT 0"),
        ("is_deemedpositive", "INTEGER DEFAULT 0"), ("affects_gross_profit", "INTEGER DEFAULT 0"),
        ("sort_position", "REAL DEFAULT 0"),
    ],
    "mst_ledger": [
        ("name", "TEXT NOT NULL DEFAULT ''"), ("parent", "TEXT DEFAULT ''"),
        ("alias", "TEXT DEFAULT ''"), ("opening_balance", "REAL DEFAULT 0"),
        ("closing_balance", "REAL DEFAULT 0"), ("is_bill_wise", "INTEGER DEFAULT 0"),
        ("gstin", "TEXT DEFAULT ''"), ("email", "TEXT DEFAULT ''"), ("state", "TEXT DEFAULT ''"),
    ],
    "mst_stock_item": [
        ("name", "TEXT NOT NULL DEFAULT ''"), ("parent", "TEXT DEFAULT ''"),
        ("category", "TEXT DEFAULT ''"), ("unit", "TEXT DEFAULT 'PCS'"),
        ("opening_balance", "REAL DEFAULT 0"), ("opening_rate", "REAL DEFAULT 0"),
        ("opening_value", "REAL DEFAULT 0"), ("closing_balance", "REAL DEFAULT 0"),
        ("closing_value", "REAL DEFAULT 0"), ("hsn_code", "TEXT DEFAULT ''"),
    ],
    "mst_vouchertype": [
        ("name", "TEXT NOT NULL DEFAULT ''"), ("parent", "TEXT DEFAULT ''"),
        ("numbering_method", "TEXT DEFAULT ''"), ("is_deemedpositive", "INTEGER DEFAULT 0"),
        ("affects_stock", "INTEGER DEFAULT 0"),
    ],
    "mst_godown": [
        ("name", "TEXT NOT NULL DEFAULT ''"), ("parent", "TEXT DEFAULT ''"), ("address", "TEXT DEFAULT ''"),
    ],
    "mst_cost_category": [
        ("name", "TEXT NOT NULL DEFAULT ''"), ("allocate_revenue", "INTEGER DEFAULT 0"),
        ("allocate_non_revenue", "INTEGER DEFAULT 0"),
    ],
    "mst_cost_centre": [
        ("name", "TEXT NOT NULL DEFAULT ''"), ("parent", "TEXT DEFAULT ''"), ("category", "TEXT DEFAULT ''"),
    ],
    "mst_employee": [
        ("name", "TEXT NOT NULL DEFAULT ''"), ("parent", "TEXT DEFAULT ''"),
        ("id_number", "TEXT DEFAULT ''"), ("date_of_joining", "TEXT"), ("designation", "TEXT DEFAULT ''"),
    ],
    "mst_payhead": [
        ("name", "TEXT NOT NULL DEFAULT ''"), ("parent", "TEXT DEFAULT ''"),
        ("pay_type", "TEXT DEFAULT ''"), ("calculation_type", "TEXT DEFAULT ''"),
    ],
    "mst_uom": [
        ("name", "TEXT NOT NULL DEFAULT ''"), ("formal_name", "TEXT DEFAULT ''"),
        ("is_simple_unit", "INTEGER DEFAULT 0"), ("decimal_places", "REAL DEFAULT 0"),
    ],
    "trn_voucher": [
        ("voucher_number", "TEXT DEFAULT ''"), ("voucher_type", "TEXT DEFAULT ''"), ("date", "TEXT"),
        ("party_name", "TEXT DEFAULT ''"), ("narration", "TEXT DEFAULT ''"), ("reference", "TEXT DEFAULT ''"),
        ("is_cancelled", "INTEGER DEFAULT 0"), ("is_optional", "INTEGER DEFAULT 0"),
        ("total_amount", "REAL DEFAULT 0"), ("final_amount", "REAL DEFAULT 0"),
    ],
    "trn_accounting": [
        ("voucher_guid", "TEXT"), ("voucher_number", "TEXT DEFAULT ''"), ("voucher_type", "TEXT DEFAULT ''"),
        ("ledger", "TEXT DEFAULT ''"), ("amount", "REAL DEFAULT 0"), ("is_deemed_positive", "INTEGER DEFAULT 0"),
        ("is_party_ledger", "INTEGER DEFAULT 0"), ("cost_centre", "TEXT"), ("cost_category", "TEXT"),
    ],
    "trn_inventory": [
        ("voucher_guid", "TEXT"), ("voucher_number", "TEXT DEFAULT ''"), ("voucher_type", "TEXT DEFAULT ''"),
        ("stock_item", "TEXT DEFAULT ''"), ("quantity", "REAL DEFAULT 0"), ("rate", "REAL DEFAULT 0"),
        ("amount", "REAL DEFAULT 0"), ("godown", "TEXT"), ("batch_name", "TEXT"),
    ],
}

TABLE_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_trn_voucher_number ON trn_voucher (company_id, division_id, voucher_number)",
    "CREATE INDEX IF NOT EXISTS idx_trn_accounting_voucher ON trn_accounting (company_id, division_id, voucher_guid)",
    "CREATE INDEX IF NOT EXISTS idx_trn_inventory_voucher ON trn_inventory (company_id, division_id, voucher_guid)",
]

SYNC_HISTORY_SCHEMA = """
CREATE TABLE IF NOT EXISTS sync_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id TEXT NOT NULL,
    company_id TEXT,
    division_id TEXT,
    mode TEXT,
    status TEXT,
    started_at TEXT,
    completed_at TEXT,
    records_processed INTEGER DEFAULT 0,
    error_message TEXT,
    summary TEXT
)
"""


def build_table_ddl(table: str) -> str:
    columns = [("guid", "TEXT NOT NULL")] + TENANT_COLUMNS + TABLE_SCHEMAS[table] + TRAILING_COLUMNS
    column_sql = ",\n    ".join(f"{name} {sql_type}" for name, sql_type in columns)
    return (
        f"CREATE TABLE IF NOT EXISTS {table} (\n    {column_sql},\n"
        f"    PRIMARY KEY (company_id, division_id, guid)\n)"
    )


class DatabaseService:
    """Service for SQLite database operations"""

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path or config.database.path
        self._connection: Optional[aiosqlite.Connection] = None
        self._read_connection: Optional[aiosqlite.Connection] = None
        self._write_lock = asyncio.Lock()
        self._column_cache: Dict[str, List[str]] = {}

    @property
    def in_memory(self) -> bool:
        return self.db_path == ":memory:"

    async def _open(self, *pragmas: str) -> aiosqlite.Connection:
        """Open one connection with row access by column name"""
        try:
            connection = await aiosqlite.connect(self.db_path, timeout=30.0)
        except sqlite3.Error as e:
            raise PersistenceError.from_driver(e) from e

        try:
            connection.row_factory = aiosqlite.Row
            for pragma in pragmas:
                await connection.execute(pragma)
        except sqlite3.Error as e:
            await connection.close()
            raise PersistenceError.from_driver(e) from e
        return connection

    async def _get_connection(self) -> aiosqlite.Connection:
        """Get or create the writer connection"""
        if self._connection is None:
            if not self.in_memory:
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

            self._connection = await self._open(
                "PRAGMA journal_mode=WAL",
                "PRAGMA busy_timeout=30000",
                "PRAGMA synchronous=NORMAL",
            )
            logger.info(f"Connected to SQLite database: {self.db_path}")

        return self._connection

    async def _get_read_connection(self) -> aiosqlite.Connection:
        """Get or create the reader connection (opened after the writer)"""
        writer = await self._get_connection()
        if self.in_memory:
            return writer
        if self._read_connection is None:
            self._read_connection = await self._open(
                "PRAGMA busy_timeout=30000",
                "PRAGMA query_only=ON",
            )
        return self._read_connection

    async def connect(self) -> None:
        """Open database connections"""
        await self._get_read_connection()

    async def disconnect(self) -> None:
        """Close database connections"""
        if self._read_connection:
            await self._read_connection.close()
            self._read_connection = None
        if self._connection:
            await self._connection.close()
            self._connection = None
            self._column_cache.clear()
            logger.info("Database connection closed")

    async def ping(self) -> bool:
        """Round-trip SELECT 1"""
        return await self.fetch_scalar("SELECT 1") == 1

    def table(self, name: str) -> TableQuery:
        """Start a query against one table"""
        return TableQuery(self, name)

    # ---- raw statements ----

    async def execute(self, query: str, params: Tuple = ()) -> int:
        """Execute a statement, commit, and return affected rows"""
        conn = await self._get_connection()
        async with self._write_lock:
            try:
                cursor = await conn.execute(query, params)
                await conn.commit()
                return cursor.rowcount
            except sqlite3.Error as e:
                await conn.rollback()
                logger.debug(f"Query execution failed: {e} | {query[:200]}")
                raise PersistenceError.from_driver(e) from e

    async def execute_many(self, query: str, params_list: List[Tuple]) -> int:
        """Execute a statement for each parameter set in one commit"""
        conn = await self._get_connection()
        async with self._write_lock:
            try:
                cursor = await conn.executemany(query, params_list)
                await conn.commit()
                return cursor.rowcount
            except sqlite3.Error as e:
                await conn.rollback()
                logger.debug(f"Batch execution failed: {e} | {query[:200]}")
                raise PersistenceError.from_driver(e) from e

    async def fetch_all(self, query: str, params: Tuple = ()) -> List[Dict[str, Any]]:
        """Fetch all rows from query"""
        conn = await self._get_read_connection()
        try:
            cursor = await conn.execute(query, params)
            rows = await cursor.fetchall()
            return [dict(row) for row in rows]
        except sqlite3.Error as e:
            logger.debug(f"Fetch failed: {e} | {query[:200]}")
            raise PersistenceError.from_driver(e) from e

    async def fetch_one(self, query: str, params: Tuple = ()) -> Optional[Dict[str, Any]]:
        """Fetch single row from query"""
        rows = await self.fetch_all(query, params)
        return rows[0] if rows else None

    async def fetch_scalar(self, query: str, params: Tuple = ()) -> Any:
        """Fetch single value from query"""
        result = await self.fetch_one(query, params)
        if result:
            return list(result.values())[0]
        return None

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Hold the write lock for a multi-statement unit.

        Statement-level failures inside the block (e.g. one bad row) do not
        abort the unit; an exception escaping the block rolls everything back.
        """
        conn = await self._get_connection()
        async with self._write_lock:
            try:
                yield conn
                await conn.commit()
            except BaseException:
                await conn.rollback()
                raise

    # ---- schema ----

    @timed
    async def create_tables(self) -> None:
        """Create all tables and indexes if missing"""
        conn = await self._get_connection()
        async with self._write_lock:
            for table in TABLE_SCHEMAS:
                await conn.execute(build_table_ddl(table))
            for index_sql in TABLE_INDEXES:
                await conn.execute(index_sql)
            await conn.execute(SYNC_HISTORY_SCHEMA)
            await conn.commit()
        self._column_cache.clear()
        logger.info("Database tables created successfully")

    async def get_columns(self, table: str) -> List[str]:
        """Column names of a table (cached), empty if the table does not exist"""
        table = quote_identifier(table)
        if table not in self._column_cache:
            rows = await self.fetch_all(f"PRAGMA table_info({table})")
            self._column_cache[table] = [row["name"] for row in rows]
        return self._column_cache[table]

    async def ensure_columns(self, table: str, columns: List[str]) -> List[str]:
        """Auto-add columns the incoming data carries but the table lacks; returns added names"""
        existing = await self.get_columns(table)
        missing = [quote_identifier(col) for col in columns if col not in existing]
        for col in missing:
            await self.execute(f"ALTER TABLE {table} ADD COLUMN {col} TEXT DEFAULT ''")
            logger.debug(f"Auto-added column '{col}' to table '{table}'")
        if missing:
            self._column_cache.pop(table, None)
        return missing

    def forget_columns(self, table: str) -> None:
        """Drop cached column info after an out-of-band schema change"""
        self._column_cache.pop(table, None)

    # ---- stats ----

    async def get_table_counts(self, tenant: Optional[TenantScope] = None) -> Dict[str, int]:
        """Row count per data table, optionally for one tenant"""
        counts = {}
        for table in DATA_TABLES:
            query = self.table(table)
            if tenant:
                query = query.tenant(tenant)
            try:
                counts[table] = await query.count()
            except PersistenceError:
                counts[table] = 0
        return counts

    async def get_database_size(self) -> int:
        """Database file size in bytes"""
        db_file = Path(self.db_path)
        return db_file.stat().st_size if db_file.exists() else 0


# Global service instance
database_service = DatabaseService()
