"""
Transactional batch writer for log events.
"""

import logging
import socket
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

from ..config import SinkOptions
from ..events import LogEvent, current_thread_id
from ..exceptions import SinkWriteError, report_error
from ..storage.database import Columns, DatabaseManager, quote_identifier
from .formatting import (
    format_exception,
    format_properties_json,
    format_timestamp,
    get_scalar_value,
    truncate,
)

logger = logging.getLogger(__name__)

STANDARD_INSERT_COLUMNS = [
    Columns.TIMESTAMP,
    Columns.LEVEL,
    Columns.LEVEL_NAME,
    Columns.MESSAGE,
    Columns.MESSAGE_TEMPLATE,
    Columns.EXCEPTION,
    Columns.PROPERTIES,
    Columns.SOURCE_CONTEXT,
    Columns.MACHINE_NAME,
    Columns.THREAD_ID,
]


@dataclass(frozen=True)
class WriteResult:
    """Outcome of a batch write."""

    written: int = 0
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class LogEventBatchWriter:
    """
    Writes batches of log events in a single transaction.

    All rows of a batch are committed together or not at all. Failures
    are reported through the options' error callback and only raised
    when throw_on_error is set.
    """

    def __init__(self, options: SinkOptions, database: DatabaseManager):
        self.options = options
        self.database = database
        self.machine_name = socket.gethostname()

        self.columns = STANDARD_INSERT_COLUMNS + [c.column_name for c in options.extension_columns]
        # Parameters are named p0, p1, ... so any column name can be bound.
        self._param_names = {column: f"p{i}" for i, column in enumerate(self.columns)}
        self.insert_sql = self._build_insert_sql()

    def _build_insert_sql(self) -> str:
        column_list = ", ".join(quote_identifier(c) for c in self.columns)
        parameter_list = ", ".join(f":{self._param_names[c]}" for c in self.columns)
        return f"INSERT INTO {self.database.table} ({column_list}) VALUES ({parameter_list})"

    async def write_batch(self, events: Iterable[LogEvent]) -> WriteResult:
        """
        Write a batch of events.

        - Empty batch: return immediately, no I/O at all
        - Ensure the schema, open one connection, BEGIN
        - Re-bind one parameter set per event and execute the same INSERT
        - COMMIT; ROLLBACK and re-raise on any failure inside the transaction
        - Outer handler: report via on_error, raise only if throw_on_error
        """
        batch = list(events)
        if not batch:
            return WriteResult()

        try:
            await self.database.ensure_schema()
            conn = await self.database.open_connection()
            try:
                await conn.execute("BEGIN")
                try:
                    parameters = self._create_parameters()
                    for event in batch:
                        self._populate_parameters(parameters, event)
                        # Same SQL text every time: sqlite3 reuses the prepared statement.
                        await conn.execute(self.insert_sql, parameters)
                    await conn.execute("COMMIT")
                except BaseException:
                    if conn.in_transaction:
                        await conn.execute("ROLLBACK")
                    raise
            finally:
                await conn.close()

            logger.debug(f"SQLite batch write completed: {len(batch)} events")
            return WriteResult(written=len(batch))

        except Exception as e:
            logger.error(f"SQLite batch write failed ({len(batch)} events): {e}")
            report_error(self.options.on_error, e)
            if self.options.throw_on_error:
                raise SinkWriteError(len(batch), str(e)) from e
            return WriteResult(error=e)

    def _create_parameters(self) -> Dict[str, Any]:
        return {name: None for name in self._param_names.values()}

    def _set(self, parameters: Dict[str, Any], column: str, value: Any) -> None:
        parameters[self._param_names[column]] = value

    def _populate_parameters(self, parameters: Dict[str, Any], event: LogEvent) -> None:
        options = self.options
        props = event.properties

        self._set(parameters, Columns.TIMESTAMP, format_timestamp(event.timestamp, options.store_timestamp_in_utc))
        self._set(parameters, Columns.LEVEL, int(event.level))
        self._set(parameters, Columns.LEVEL_NAME, event.level.display_name)
        self._set(parameters, Columns.MESSAGE, truncate(event.render_message(), options.max_message_length))
        self._set(parameters, Columns.MESSAGE_TEMPLATE, event.message_template)

        if event.exception is not None and options.store_exception_details:
            exception = truncate(format_exception(event.exception), options.max_exception_length)
        else:
            exception = None
        self._set(parameters, Columns.EXCEPTION, exception)

        if options.store_properties_as_json and len(props) > 0:
            # Truncation may cut the JSON short; accepted.
            properties = truncate(format_properties_json(props), options.max_properties_length)
        else:
            properties = None
        self._set(parameters, Columns.PROPERTIES, properties)

        source_context = props.get("SourceContext")
        self._set(
            parameters,
            Columns.SOURCE_CONTEXT,
            get_scalar_value(source_context) if source_context is not None else None,
        )
        self._set(parameters, Columns.MACHINE_NAME, self.machine_name)

        thread_id = props.get("ThreadId")
        self._set(
            parameters,
            Columns.THREAD_ID,
            get_scalar_value(thread_id) if thread_id is not None else current_thread_id(),
        )

        # Missing properties bind NULL whatever allow_null says; NOT NULL is the store's check.
        for column in options.extension_columns:
            value = props.get(column.property_name)
            self._set(
                parameters,
                column.column_name,
                get_scalar_value(value) if value is not None else None,
            )

