"""
Configuration for the SQLite log sink.
"""

import copy
import os
from dataclasses import dataclass, field, fields, replace
from datetime import timedelta
from enum import Enum, IntEnum
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from .events import LogLevel
from .exceptions import ConfigurationError

MEMORY_DATABASE = ":memory:"

# Columns every log table carries; extension columns may not reuse these names.
STANDARD_COLUMN_NAMES = (
    "Id",
    "Timestamp",
    "Level",
    "LevelName",
    "Message",
    "MessageTemplate",
    "Exception",
    "Properties",
    "SourceContext",
    "MachineName",
    "ThreadId",
)


class JournalMode(Enum):
    """SQLite journal modes (PRAGMA journal_mode)."""

    DELETE = "delete"
    TRUNCATE = "truncate"
    PERSIST = "persist"
    MEMORY = "memory"
    WAL = "wal"
    OFF = "off"


class SynchronousMode(IntEnum):
    """SQLite synchronous modes (PRAGMA synchronous)."""

    OFF = 0
    NORMAL = 1
    FULL = 2
    EXTRA = 3


@dataclass(frozen=True)
class ExtensionColumn:
    """A deployment-specific column populated from a named event property."""

    column_name: str
    property_name: str
    data_type: str = "TEXT"
    allow_null: bool = True
    create_index: bool = False


@dataclass
class SinkOptions:
    """Sink configuration. The sink takes a private copy at construction."""

    # Store
    database_path: str = "logs.db"
    table_name: str = "Logs"
    auto_create_schema: bool = True
    journal_mode: JournalMode = JournalMode.WAL
    synchronous_mode: SynchronousMode = SynchronousMode.NORMAL
    additional_connection_parameters: Dict[str, str] = field(default_factory=dict)

    # Events
    minimum_level: LogLevel = LogLevel.VERBOSE
    store_timestamp_in_utc: bool = True
    store_properties_as_json: bool = True
    store_exception_details: bool = True
    max_message_length: Optional[int] = None
    max_exception_length: Optional[int] = None
    max_properties_length: Optional[int] = None
    extension_columns: List[ExtensionColumn] = field(default_factory=list)

    # Batching
    batch_size_limit: int = 100
    batch_period: timedelta = timedelta(seconds=2)
    queue_limit: Optional[int] = 10000

    # Retention
    retention_period: Optional[timedelta] = None
    retention_count: Optional[int] = None
    max_database_size: Optional[int] = None
    cleanup_interval: timedelta = timedelta(hours=1)

    # Errors
    on_error: Optional[Callable[[BaseException], None]] = None
    throw_on_error: bool = False

    @property
    def is_memory_database(self) -> bool:
        return self.database_path == MEMORY_DATABASE

    def has_retention_policy(self) -> bool:
        return (
            self.retention_period is not None
            or self.retention_count is not None
            or self.max_database_size is not None
        )

    def validate(self) -> None:
        """Reject invalid settings, naming the field that failed."""
        if not self.database_path or not str(self.database_path).strip():
            raise ConfigurationError("database_path", "must not be empty")
        if not self.table_name or not self.table_name.strip():
            raise ConfigurationError("table_name", "must not be empty")

        if self.batch_size_limit <= 0:
            raise ConfigurationError("batch_size_limit", "must be greater than 0")
        if self.batch_period <= timedelta(0):
            raise ConfigurationError("batch_period", "must be greater than 0")
        if self.queue_limit is not None and self.queue_limit <= 0:
            raise ConfigurationError("queue_limit", "must be greater than 0")

        if self.retention_count is not None and self.retention_count <= 0:
            raise ConfigurationError("retention_count", "must be greater than 0")
        if self.retention_period is not None and self.retention_period <= timedelta(0):
            raise ConfigurationError("retention_period", "must be greater than 0")
        if self.max_database_size is not None and self.max_database_size <= 0:
            raise ConfigurationError("max_database_size", "must be greater than 0")
        if self.cleanup_interval <= timedelta(0):
            raise ConfigurationError("cleanup_interval", "must be greater than 0")

        for name in ("max_message_length", "max_exception_length", "max_properties_length"):
            limit = getattr(self, name)
            if limit is not None and limit <= 0:
                raise ConfigurationError(name, "must be greater than 0")

        if not isinstance(self.journal_mode, JournalMode):
            raise ConfigurationError("journal_mode", f"unknown journal mode {self.journal_mode!r}")
        if not isinstance(self.synchronous_mode, SynchronousMode):
            raise ConfigurationError(
                "synchronous_mode", f"unknown synchronous mode {self.synchronous_mode!r}"
            )

        seen = {name.lower() for name in STANDARD_COLUMN_NAMES}
        for column in self.extension_columns:
            if not column.column_name or not column.column_name.strip():
                raise ConfigurationError("extension_columns", "column_name must not be empty")
            if not column.property_name or not column.property_name.strip():
                raise ConfigurationError(
                    "extension_columns",
                    f"property_name must not be empty for column {column.column_name!r}",
                )
            if column.column_name.lower() in seen:
                raise ConfigurationError(
                    "extension_columns", f"duplicate column name {column.column_name!r}"
                )
            seen.add(column.column_name.lower())

    def clone(self) -> "SinkOptions":
        return replace(
            self,
            extension_columns=list(self.extension_columns),
            additional_connection_parameters=copy.copy(self.additional_connection_parameters),
        )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "SinkOptions":
        """
        Build options from a plain mapping, e.g. a parsed JSON config section.

        Keys may be snake_case or camelCase. Durations are seconds or
        "[d.]HH:MM:SS[.fff]" strings; levels and modes are matched by name.
        """
        known = {f.name for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        for raw_key, value in data.items():
            key = _snake_case(raw_key)
            key = _OPTION_ALIASES.get(key, key)
            if key not in known:
                raise ConfigurationError(raw_key, "unknown setting")
            kwargs[key] = _coerce_option(key, value)
        return cls(**kwargs)

    @classmethod
    def from_env(cls, prefix: str = "LOGSINK_") -> "SinkOptions":
        """Create options from environment variables (e.g. LOGSINK_DATABASE_PATH)."""
        data = {}
        for f in fields(cls):
            if f.name in ("on_error", "extension_columns", "additional_connection_parameters"):
                continue
            value = os.getenv(prefix + f.name.upper())
            if value is not None:
                data[f.name] = None if value.strip().lower() in ("", "none", "null") else value
        return cls.from_mapping(data)


# --- Mapping helpers ----------------------------------------------------------

_OPTION_ALIASES = {
    "restricted_to_minimum_level": "minimum_level",
    "auto_create_database": "auto_create_schema",
    "custom_columns": "extension_columns",
    "batch_size": "batch_size_limit",
}

_DURATION_FIELDS = {"batch_period", "retention_period", "cleanup_interval"}
_INT_FIELDS = {
    "batch_size_limit",
    "queue_limit",
    "retention_count",
    "max_database_size",
    "max_message_length",
    "max_exception_length",
    "max_properties_length",
}
_BOOL_FIELDS = {
    "auto_create_schema",
    "store_timestamp_in_utc",
    "store_properties_as_json",
    "store_exception_details",
    "throw_on_error",
}


def _snake_case(name: str) -> str:
    out = []
    for i, ch in enumerate(name):
        if ch.isupper() and i > 0 and not name[i - 1].isupper():
            out.append("_")
        out.append(ch.lower())
    return "".join(out).replace("-", "_")


def _coerce_option(key: str, value: Any) -> Any:
    try:
        if value is None:
            return None
        if key in _DURATION_FIELDS:
            return parse_duration(value)
        if key in _INT_FIELDS:
            return int(value)
        if key in _BOOL_FIELDS:
            return _parse_bool(value)
        if key == "minimum_level":
            return LogLevel.parse(value)
        if key == "journal_mode":
            return value if isinstance(value, JournalMode) else JournalMode(str(value).lower())
        if key == "synchronous_mode":
            if isinstance(value, SynchronousMode):
                return value
            if isinstance(value, int) or str(value).isdigit():
                return SynchronousMode(int(value))
            return SynchronousMode[str(value).upper()]
        if key == "extension_columns":
            return [_parse_extension_column(item) for item in value]
        if key == "additional_connection_parameters":
            return {str(k): str(v) for k, v in dict(value).items()}
    except ConfigurationError:
        raise
    except (KeyError, TypeError, ValueError) as e:
        raise ConfigurationError(key, f"invalid value {value!r} ({e})") from e
    return value


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"not a boolean: {value!r}")


def _parse_extension_column(item: Union[ExtensionColumn, Mapping[str, Any]]) -> ExtensionColumn:
    if isinstance(item, ExtensionColumn):
        return item
    values = {_snake_case(k): v for k, v in item.items()}
    if "data_type" in values:
        values["data_type"] = str(values["data_type"])
    for flag in ("allow_null", "create_index"):
        if flag in values:
            values[flag] = _parse_bool(values[flag])
    return ExtensionColumn(
        column_name=values.get("column_name", ""),
        property_name=values.get("property_name", ""),
        data_type=values.get("data_type", "TEXT"),
        allow_null=values.get("allow_null", True),
        create_index=values.get("create_index", False),
    )


def parse_duration(value: Union[timedelta, int, float, str]) -> timedelta:
    """Parse seconds, or a "[d.]HH:MM:SS[.fff]" string, into a timedelta."""
    if isinstance(value, timedelta):
        return value
    if isinstance(value, (int, float)):
        return timedelta(seconds=value)

    text = str(value).strip()
    if ":" not in text:
        return timedelta(seconds=float(text))

    days = 0
    head, _, rest = text.partition(":")
    if "." in head:
        day_part, _, head = head.partition(".")
        days = int(day_part)
    parts = [head] + rest.split(":")
    if len(parts) != 3:
        raise ValueError(f"expected HH:MM:SS, got {value!r}")
    hours, minutes, seconds = int(parts[0]), int(parts[1]), float(parts[2])
    return timedelta(days=days, hours=hours, minutes=minutes, seconds=seconds)
