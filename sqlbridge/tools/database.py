"""
sqlbridge/tools/database.py
===========================

Snowflake connectivity and query execution for the tool handlers.

Connection Strategy
-------------------
The client uses a **lazy connection** pattern: the Snowflake connector is not
instantiated until the first query is made.  This lets the server start and
answer ``tools/list`` even when credentials are missing; the first query then
fails with a readable error result instead.

Async boundary
--------------
The connector is blocking.  ``query()`` runs the cursor work in a worker
thread via ``asyncio.to_thread`` so the event loop keeps serving other
sessions while a statement runs.

Row normalization
-----------------
Rows are returned as plain ``dict`` objects keyed by column name.  Values the
JSON encoder cannot represent (``datetime``, ``Decimal``, ``bytes`` ...) are
converted by ``normalize_value`` before anything leaves this module, so no
driver types leak into tool results.
"""

import asyncio
import datetime
import decimal
import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, NamedTuple, Optional

import snowflake.connector
from snowflake.connector import errors as sf_errors

from ..config import Config
from ..errors import BackingResourceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ColumnField:
    """Column metadata taken from ``cursor.description``."""

    name: str
    type_code: Optional[int] = None
    nullable: Optional[bool] = None


class QueryResult(NamedTuple):
    rows: List[Dict[str, Any]]
    fields: List[ColumnField]


def normalize_value(value: Any) -> Any:
    """Convert a driver value into something ``json.dumps`` accepts."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, decimal.Decimal):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()
    if isinstance(value, dict):
        return {str(k): normalize_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [normalize_value(v) for v in value]
    return str(value)


def normalize_rows(columns: List[str], rows: List[Any]) -> List[Dict[str, Any]]:
    """Turn cursor rows (tuples or dict-like rows) into plain dicts."""
    normalized = []
    for row in rows:
        if isinstance(row, dict):
            items = row.items()
        else:
            items = zip(columns, row)
        normalized.append({str(k): normalize_value(v) for k, v in items})
    return normalized


class Database:
    """Manages a single Snowflake connection and executes SQL statements.

    Parameters
    ----------
    config:
        Populated ``Config`` instance with the ``SNOWFLAKE_*`` credentials.
    """

    def __init__(self, config: Config):
        self.config = config
        self._conn = None
        self._lock = threading.Lock()

    def connect(self) -> snowflake.connector.SnowflakeConnection:
        """Open (or return the existing) Snowflake connection.

        Raises
        ------
        snowflake.connector.errors.Error
            If the credentials are invalid or the network is unreachable.
        """
        with self._lock:
            if not self._conn:
                logger.info("Opening Snowflake connection to account: %s", self.config.snowflake_account)
                self._conn = snowflake.connector.connect(
                    user=self.config.snowflake_user,
                    password=self.config.snowflake_password,
                    account=self.config.snowflake_account,
                    warehouse=self.config.snowflake_warehouse,
                    database=self.config.snowflake_database,
                    schema=self.config.snowflake_schema,
                    role=self.config.snowflake_role,
                )
            return self._conn

    def _execute(self, sql: str) -> QueryResult:
        conn = self.connect()
        cursor = conn.cursor()
        try:
            logger.debug("Executing SQL: %.200s", sql)
            cursor.execute(sql)
            if cursor.description is None:
                return QueryResult([{"affected_rows": cursor.rowcount}], [])
            fields = [
                ColumnField(
                    name=col[0],
                    type_code=col[1] if len(col) > 1 else None,
                    nullable=col[6] if len(col) > 6 else None,
                )
                for col in cursor.description
            ]
            rows = normalize_rows([f.name for f in fields], cursor.fetchall())
            logger.info("Query returned %d rows.", len(rows))
            return QueryResult(rows, fields)
        finally:
            cursor.close()

    async def query(self, sql: str) -> QueryResult:
        """Execute ``sql`` and return its rows and column metadata.

        Raises
        ------
        BackingResourceError
            On SQL errors, missing objects, or connection failures.
        """
        try:
            return await asyncio.to_thread(self._execute, sql)
        except (sf_errors.Error, OSError) as e:
            logger.warning("Query failed: %s", e)
            raise BackingResourceError(str(e)) from e

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                logger.info("Closing Snowflake connection.")
                self._conn.close()
                self._conn = None
