"""
SQLite connection and schema management for the log table.

Every connection is opened through DatabaseManager.open_connection() so
that the same PRAGMA tuning is applied to writers and readers alike.
"""

import asyncio
import logging
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote, urlencode

import aiosqlite

from ..config import SinkOptions

logger = logging.getLogger(__name__)

# sqlite3.connect() keyword arguments that may be given as connection parameters.
CONNECT_KWARGS = {"timeout": float, "cached_statements": int}


class Columns:
    """Standard column names of the log table."""

    ID = "Id"
    TIMESTAMP = "Timestamp"
    LEVEL = "Level"
    LEVEL_NAME = "LevelName"
    MESSAGE = "Message"
    MESSAGE_TEMPLATE = "MessageTemplate"
    EXCEPTION = "Exception"
    PROPERTIES = "Properties"
    SOURCE_CONTEXT = "SourceContext"
    MACHINE_NAME = "MachineName"
    THREAD_ID = "ThreadId"


def quote_identifier(name: str) -> str:
    """Quote a table/column/index name for use in SQL."""
    return '"' + name.replace('"', '""') + '"'


class DatabaseManager:
    """
    Owns the store location, connection tuning and the log table schema.

    Schema creation happens at most once per instance and is guarded by a
    lock so that concurrent first writers observe a single creation.
    """

    def __init__(self, options: SinkOptions):
        self.options = options
        self.table = quote_identifier(options.table_name)
        self.is_memory = options.is_memory_database
        self.database_uri, self.connect_kwargs = self._build_connection_parameters()

        self._schema_lock = asyncio.Lock()
        self._schema_initialized = False
        # Holds a shared in-memory database open between per-call connections.
        self._keepalive: Optional[aiosqlite.Connection] = None
        self._keepalive_lock = asyncio.Lock()

    @property
    def schema_initialized(self) -> bool:
        return self._schema_initialized

    def _build_connection_parameters(self) -> Tuple[str, Dict[str, Any]]:
        """
        Build the SQLite URI and connect() keyword arguments.

        - ":memory:" becomes a process-unique shared-cache memory database
        - file paths are opened read/write/create
        - timeout / cached_statements go to sqlite3.connect(), every other
          additional parameter is appended to the URI query string
        """
        kwargs: Dict[str, Any] = {"timeout": 5.0}
        query: Dict[str, str] = {}

        if self.is_memory:
            path = f"logsink-{uuid.uuid4().hex}"
            query["mode"] = "memory"
            query["cache"] = "shared"
        else:
            path = quote(str(Path(self.options.database_path).expanduser()))
            query["mode"] = "rwc"

        for key, value in self.options.additional_connection_parameters.items():
            if key in CONNECT_KWARGS:
                kwargs[key] = CONNECT_KWARGS[key](value)
            else:
                query[key] = value

        return f"file:{path}?{urlencode(query)}", kwargs

    async def open_connection(self) -> aiosqlite.Connection:
        """
        Open and tune a new connection.

        The connection runs in autocommit mode; callers issue BEGIN/COMMIT
        themselves. A connection that fails tuning is closed before the
        error propagates.
        """
        if self.is_memory and self._keepalive is None:
            async with self._keepalive_lock:
                if self._keepalive is None:
                    self._keepalive = await self._connect()

        return await self._connect()

    async def _connect(self) -> aiosqlite.Connection:
        conn = await aiosqlite.connect(
            self.database_uri, uri=True, isolation_level=None, **self.connect_kwargs
        )
        try:
            await self._configure_connection(conn)
        except BaseException:
            await conn.close()
            raise
        return conn

    async def _configure_connection(self, conn: aiosqlite.Connection) -> None:
        """Apply performance PRAGMAs derived from the options."""
        pragmas = [
            f"journal_mode = {self.options.journal_mode.value.upper()}",
            f"synchronous = {int(self.options.synchronous_mode)}",
            "temp_store = MEMORY",
            "mmap_size = 268435456",  # 256MB mmap
            "cache_size = -64000",  # 64MB cache
        ]
        for pragma in pragmas:
            async with conn.execute(f"PRAGMA {pragma}") as cursor:
                await cursor.fetchall()
        logger.debug(f"SQLite PRAGMAs applied: {', '.join(pragmas)}")

    # --- Schema ---------------------------------------------------------------

    async def ensure_schema(self) -> None:
        """Create the log table and its indexes once, if auto-create is on."""
        if self._schema_initialized or not self.options.auto_create_schema:
            return

        async with self._schema_lock:
            if self._schema_initialized:
                return

            self._ensure_directory_exists()

            conn = await self.open_connection()
            try:
                await conn.execute(self.build_create_table_sql())
                for sql in self.build_create_index_sql():
                    await conn.execute(sql)
            finally:
                await conn.close()

            self._schema_initialized = True
            logger.info(f"SQLite schema initialized for table '{self.options.table_name}'")

    def _ensure_directory_exists(self) -> None:
        if self.is_memory:
            return

        directory = Path(self.options.database_path).expanduser().parent
        if not directory.exists():
            directory.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created directory '{directory}' for SQLite database")

    def build_create_table_sql(self) -> str:
        """Build CREATE TABLE for the standard columns plus extension columns."""
        lines = [
            f"{quote_identifier(Columns.ID)} INTEGER PRIMARY KEY AUTOINCREMENT",
            f"{quote_identifier(Columns.TIMESTAMP)} TEXT NOT NULL",
            f"{quote_identifier(Columns.LEVEL)} INTEGER NOT NULL",
            f"{quote_identifier(Columns.LEVEL_NAME)} TEXT NOT NULL",
            f"{quote_identifier(Columns.MESSAGE)} TEXT",
            f"{quote_identifier(Columns.MESSAGE_TEMPLATE)} TEXT",
            f"{quote_identifier(Columns.EXCEPTION)} TEXT",
            f"{quote_identifier(Columns.PROPERTIES)} TEXT",
            f"{quote_identifier(Columns.SOURCE_CONTEXT)} TEXT",
            f"{quote_identifier(Columns.MACHINE_NAME)} TEXT",
            f"{quote_identifier(Columns.THREAD_ID)} INTEGER",
        ]
        for column in self.options.extension_columns:
            not_null = "" if column.allow_null else " NOT NULL"
            lines.append(f"{quote_identifier(column.column_name)} {column.data_type}{not_null}")

        body = ",\n    ".join(lines)
        return f"CREATE TABLE IF NOT EXISTS {self.table} (\n    {body}\n)"

    def index_definitions(self) -> List[Tuple[str, List[str]]]:
        table_name = self.options.table_name
        indexes = [
            (f"IX_{table_name}_Timestamp", [Columns.TIMESTAMP]),
            (f"IX_{table_name}_Level", [Columns.LEVEL]),
            (f"IX_{table_name}_Timestamp_Level", [Columns.TIMESTAMP, Columns.LEVEL]),
        ]
        for column in self.options.extension_columns:
            if column.create_index:
                indexes.append((f"IX_{table_name}_{column.column_name}", [column.column_name]))
        return indexes

    def build_create_index_sql(self) -> List[str]:
        statements = []
        for name, columns in self.index_definitions():
            column_list = ", ".join(quote_identifier(c) for c in columns)
            statements.append(
                f"CREATE INDEX IF NOT EXISTS {quote_identifier(name)} "
                f"ON {self.table} ({column_list})"
            )
        return statements

    # --- Introspection / maintenance ------------------------------------------

    async def get_log_count(self) -> int:
        """Return the number of rows in the log table."""
        conn = await self.open_connection()
        try:
            async with conn.execute(f"SELECT COUNT(*) FROM {self.table}") as cursor:
                row = await cursor.fetchone()
        finally:
            await conn.close()
        return int(row[0]) if row else 0

    async def get_database_size(self) -> int:
        """Return page_count * page_size in bytes (0 for in-memory stores)."""
        if self.is_memory:
            return 0

        conn = await self.open_connection()
        try:
            async with conn.execute("PRAGMA page_count") as cursor:
                page_count = (await cursor.fetchone())[0]
            async with conn.execute("PRAGMA page_size") as cursor:
                page_size = (await cursor.fetchone())[0]
        finally:
            await conn.close()
        return int(page_count) * int(page_size)

    async def vacuum(self) -> None:
        """
        Rebuild the database file to reclaim free pages.

        Slow, and needs roughly twice the current file size in free disk
        space. Not for hot paths.
        """
        if self.is_memory:
            return

        conn = await self.open_connection()
        try:
            await conn.execute("VACUUM")
        finally:
            await conn.close()

        logger.info(f"SQLite VACUUM completed for database '{self.options.database_path}'")

    async def close(self) -> None:
        """Release the in-memory keep-alive connection, if any."""
        if self._keepalive is not None:
            keepalive, self._keepalive = self._keepalive, None
            await keepalive.close()
