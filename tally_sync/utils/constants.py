"""
Constants Module
Application-wide constants
"""

# Application Info
APP_NAME = "Tally Sync"
APP_VERSION = "1.0.0"

# Database Tables - Master
MASTER_TABLES = [
    "mst_group",
    "mst_ledger",
    "mst_stock_item",
    "mst_vouchertype",
    "mst_godown",
    "mst_cost_category",
    "mst_cost_centre",
    "mst_employee",
    "mst_payhead",
    "mst_uom"
]

# Database Tables - Transaction
TRANSACTION_TABLES = [
    "trn_voucher",
    "trn_accounting",
    "trn_inventory"
]

# Tenant-scoped data tables
DATA_TABLES = MASTER_TABLES + TRANSACTION_TABLES

# Separator tokens used when deriving child entry GUIDs from a voucher GUID
ACCOUNTING_GUID_TOKEN = "accounting"
INVENTORY_GUID_TOKEN = "inventory"


# Error Codes
class ErrorCode:
    TALLY_CONNECTION_FAILED = "TALLY_CONNECTION_FAILED"
    DATABASE_ERROR = "DATABASE_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    SYNC_IN_PROGRESS = "SYNC_IN_PROGRESS"
    NOT_FOUND = "NOT_FOUND"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


# SQLSTATE-style persistence error codes
class PgErrorCode:
    UNDEFINED_COLUMN = "42703"
    UNDEFINED_TABLE = "42P01"
    UNIQUE_VIOLATION = "23505"
    NOT_NULL_VIOLATION = "23502"
    INTEGRITY = "23000"
    UNKNOWN = "HY000"


# Sync Status
class SyncStatus:
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"
    REJECTED = "rejected"


# Per-table outcome within a sync run
class TableStatus:
    SUCCESS = "success"
    FAILED = "failed"
    EMPTY = "empty"


# Sync stages reported to progress listeners
class SyncStage:
    STARTING = "starting"
    FETCH = "fetch"
    EXTRACT = "extract"
    LOAD = "load"
    REPAIR = "repair"
    RECALCULATE = "recalculate"
    COMPLETED = "completed"


# Sync modes
class SyncMode:
    FULL = "full"
    INCREMENTAL = "incremental"


# Minutes between scheduled syncs per sync_frequency; "disabled" never runs
SYNC_FREQUENCY_MINUTES = {
    "1min": 1,
    "5min": 5,
    "15min": 15,
    "30min": 30,
    "1hour": 60,
    "3hours": 180,
    "6hours": 360,
    "12hours": 720,
    "24hours": 1440,
    "weekly": 7 * 24 * 60,
    "monthly": 30 * 24 * 60,
}

# Webhook entity_type -> table
WEBHOOK_ENTITY_TABLES = {
    "ledger": "mst_ledger",
    "group": "mst_group",
    "stock_item": "mst_stock_item",
    "voucher_type": "mst_vouchertype",
    "godown": "mst_godown",
    "cost_category": "mst_cost_category",
    "cost_centre": "mst_cost_centre",
    "employee": "mst_employee",
    "payhead": "mst_payhead",
    "unit": "mst_uom",
    "voucher": "trn_voucher",
}


# Bulk loader operations
class LoadOperation:
    INSERT = "insert"
    APPEND = "append"
    UPSERT = "upsert"
    REPLACE = "replace"


# Health Status
class HealthStatus:
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    DEGRADED = "degraded"
