"""
logsink: a batched, transactional SQLite sink for structured log events.
"""

from .config import ExtensionColumn, JournalMode, SinkOptions, SynchronousMode
from .events import (
    DictionaryValue,
    ExceptionInfo,
    LogEvent,
    LogLevel,
    ScalarValue,
    SequenceValue,
    StructureValue,
)
from .exceptions import ConfigurationError, LogSinkError, SinkWriteError
from .sink import SQLiteSink, create_sink
from .handler import SQLiteHandler

__version__ = "0.1.0"

__all__ = [
    "ExtensionColumn",
    "JournalMode",
    "SinkOptions",
    "SynchronousMode",
    "DictionaryValue",
    "ExceptionInfo",
    "LogEvent",
    "LogLevel",
    "ScalarValue",
    "SequenceValue",
    "StructureValue",
    "ConfigurationError",
    "LogSinkError",
    "SinkWriteError",
    "SQLiteSink",
    "create_sink",
    "SQLiteHandler",
]
