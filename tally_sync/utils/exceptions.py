"""
Exceptions Module
Error types raised by the Tally client and the persistence layer
"""

import sqlite3

from .constants import PgErrorCode


class TallySyncError(Exception):
    """Base error for the sync service"""


class TallyRequestError(TallySyncError):
    """Tally was unreachable, timed out, or answered with a non-2xx status"""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class PersistenceError(TallySyncError):
    """
    Database failure carrying a SQLSTATE-style code.

    Callers branch on ``code`` (e.g. UNDEFINED_COLUMN) rather than on
    driver-specific exception types.
    """

    def __init__(self, message: str, code: str = PgErrorCode.UNKNOWN):
        super().__init__(message)
        self.code = code

    @classmethod
    def from_driver(cls, error: Exception) -> "PersistenceError":
        """Translate a sqlite3 error into a PersistenceError"""
        message = str(error)
        lowered = message.lower()
        if "no such column" in lowered or "has no column named" in lowered:
            code = PgErrorCode.UNDEFINED_COLUMN
        elif "no such table" in lowered:
            code = PgErrorCode.UNDEFINED_TABLE
        elif isinstance(error, sqlite3.IntegrityError) and "unique" in lowered:
            code = PgErrorCode.UNIQUE_VIOLATION
        elif isinstance(error, sqlite3.IntegrityError):
            code = PgErrorCode.NOT_NULL_VIOLATION if "not null" in lowered else PgErrorCode.INTEGRITY
        else:
            code = PgErrorCode.UNKNOWN
        return cls(message, code)
