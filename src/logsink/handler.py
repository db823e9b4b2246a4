"""
Bridge from the standard library ``logging`` module to the SQLite sink.
"""

import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .config import SinkOptions
from .events import ExceptionInfo, LogEvent, LogLevel, PropertyValue, ScalarValue, to_property_value
from .fast_path.batching import PeriodicBatchingSink
from .sink import create_sink

# Attributes every LogRecord has; anything else came in through ``extra=``.
_RECORD_ATTRIBUTES = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__
) | {"message", "asctime", "taskName"}

# Loggers that report on the sink's own I/O.
_INTERNAL_LOGGERS = frozenset({"logsink", "aiosqlite", "asyncio"})


class SQLiteHandler(logging.Handler):
    """
    A logging handler that stores records in a SQLite log table.

    Usage:
        handler = SQLiteHandler(SinkOptions(database_path="app-logs.db"))
        logging.getLogger().addHandler(handler)
        logging.getLogger("app").info("User %s signed in", "alice", extra={"UserId": "alice"})

    Keyword arguments other than ``level`` override fields of ``options``.
    """

    def __init__(
        self,
        options: Optional[SinkOptions] = None,
        level: int = logging.NOTSET,
        **option_overrides: Any,
    ):
        super().__init__(level)
        options = options or SinkOptions()
        if option_overrides:
            options = replace(options, **option_overrides)

        self.sink: PeriodicBatchingSink = create_sink(options)
        self.minimum_level = LogLevel.parse(options.minimum_level)

    def emit(self, record: logging.LogRecord) -> None:
        if record.name.split(".", 1)[0] in _INTERNAL_LOGGERS:
            return
        # Records logged on the batching thread come from the sink itself.
        if record.thread == self.sink.thread_id:
            return
        if LogLevel.from_python_level(record.levelno) < self.minimum_level:
            return

        try:
            self.sink.emit(self.to_event(record))
        except RecursionError:
            raise
        except Exception:
            self.handleError(record)

    def to_event(self, record: logging.LogRecord) -> LogEvent:
        """Convert a LogRecord into a log event."""
        properties: Dict[str, PropertyValue] = {
            "SourceContext": ScalarValue(record.name),
            "ThreadId": ScalarValue(record.thread),
        }
        for name, value in record.__dict__.items():
            if name not in _RECORD_ATTRIBUTES and not name.startswith("_"):
                properties[name] = to_property_value(value)

        exception = None
        if record.exc_info and record.exc_info[1] is not None:
            exception = ExceptionInfo.from_exception(record.exc_info[1])

        return LogEvent(
            timestamp=datetime.fromtimestamp(record.created, timezone.utc),
            level=LogLevel.from_python_level(record.levelno),
            message_template=str(record.msg),
            properties=properties,
            exception=exception,
            rendered_message=record.getMessage(),
        )

    def flush(self) -> None:
        self.sink.flush()

    def close(self) -> None:
        try:
            self.sink.close()
        finally:
            super().close()
