"""
Structured log event model.

An event is produced once per log call by the logging front-end and
consumed once by the batch writer. Property values form a closed set of
shapes (scalar, sequence, structure, dictionary) that nest recursively.
"""

import dataclasses
import re
import threading
import traceback
from datetime import datetime, timezone
from enum import IntEnum
from typing import Any, Dict, Mapping, Optional, Tuple, Union


class LogLevel(IntEnum):
    """Ordered log severity."""

    VERBOSE = 0
    DEBUG = 1
    INFORMATION = 2
    WARNING = 3
    ERROR = 4
    FATAL = 5

    @property
    def display_name(self) -> str:
        """Canonical name stored in the LevelName column."""
        return self.name.capitalize()

    @classmethod
    def parse(cls, value: Union[str, int, "LogLevel"]) -> "LogLevel":
        """Parse a level from its name, a common alias or its ordinal."""
        if isinstance(value, LogLevel):
            return value
        if isinstance(value, int):
            return cls(value)
        key = str(value).strip().upper()
        aliases = {
            "TRACE": cls.VERBOSE,
            "INFO": cls.INFORMATION,
            "WARN": cls.WARNING,
            "CRITICAL": cls.FATAL,
        }
        if key in aliases:
            return aliases[key]
        if key.isdigit():
            return cls(int(key))
        return cls[key]

    @classmethod
    def from_python_level(cls, levelno: int) -> "LogLevel":
        """Map a ``logging`` level number onto the sink's severity scale."""
        if levelno >= 50:
            return cls.FATAL
        if levelno >= 40:
            return cls.ERROR
        if levelno >= 30:
            return cls.WARNING
        if levelno >= 20:
            return cls.INFORMATION
        if levelno >= 10:
            return cls.DEBUG
        return cls.VERBOSE

    def to_python_level(self) -> int:
        return {
            LogLevel.VERBOSE: 5,
            LogLevel.DEBUG: 10,
            LogLevel.INFORMATION: 20,
            LogLevel.WARNING: 30,
            LogLevel.ERROR: 40,
            LogLevel.FATAL: 50,
        }[self]


# --- Property values ----------------------------------------------------------


@dataclasses.dataclass(frozen=True)
class ScalarValue:
    """A leaf value: None, str, bool, number, date/time, UUID or anything else."""

    value: Any

    def render(self, format_spec: Optional[str] = None) -> str:
        value = self.value
        if value is None:
            return "null"
        if isinstance(value, str):
            if format_spec == "l":
                return value
            return '"' + value.replace('"', '\\"') + '"'
        if format_spec and format_spec != "l":
            try:
                return format(value, format_spec)
            except (TypeError, ValueError):
                pass
        if isinstance(value, datetime):
            return value.isoformat()
        return str(value)

    def __str__(self) -> str:
        return self.render()


@dataclasses.dataclass(frozen=True)
class SequenceValue:
    """An ordered list of property values."""

    elements: Tuple["PropertyValue", ...] = ()

    def __str__(self) -> str:
        return "[" + ", ".join(str(e) for e in self.elements) + "]"


@dataclasses.dataclass(frozen=True)
class StructureValue:
    """A named-field structure, optionally tagged with a type name."""

    properties: Tuple[Tuple[str, "PropertyValue"], ...] = ()
    type_tag: Optional[str] = None

    def __str__(self) -> str:
        body = ", ".join(f"{name}: {value}" for name, value in self.properties)
        prefix = f"{self.type_tag} " if self.type_tag else ""
        return f"{prefix}{{ {body} }}" if body else f"{prefix}{{ }}"


@dataclasses.dataclass(frozen=True)
class DictionaryValue:
    """A key-value map whose keys are scalars."""

    elements: Tuple[Tuple[ScalarValue, "PropertyValue"], ...] = ()

    def __str__(self) -> str:
        return "[" + ", ".join(f"({key}: {value})" for key, value in self.elements) + "]"


PropertyValue = Union[ScalarValue, SequenceValue, StructureValue, DictionaryValue]
PROPERTY_VALUE_TYPES = (ScalarValue, SequenceValue, StructureValue, DictionaryValue)


def to_property_value(obj: Any) -> PropertyValue:
    """
    Capture a Python object as a property value.

    - Property values pass through unchanged
    - list / tuple / set / frozenset -> SequenceValue
    - dict -> DictionaryValue (keys captured as scalars)
    - dataclass instances -> StructureValue tagged with the class name
    - everything else -> ScalarValue
    """
    if isinstance(obj, PROPERTY_VALUE_TYPES):
        return obj
    if isinstance(obj, (list, tuple, set, frozenset)):
        return SequenceValue(tuple(to_property_value(item) for item in obj))
    if isinstance(obj, dict):
        return DictionaryValue(
            tuple((ScalarValue(key), to_property_value(value)) for key, value in obj.items())
        )
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return StructureValue(
            tuple(
                (f.name, to_property_value(getattr(obj, f.name)))
                for f in dataclasses.fields(obj)
            ),
            type_tag=type(obj).__name__,
        )
    return ScalarValue(obj)


# --- Exceptions ---------------------------------------------------------------

# Chains deeper than this are cut when captured from live exceptions;
# the formatter applies its own, smaller, limit.
MAX_CAPTURE_DEPTH = 32


@dataclasses.dataclass(frozen=True)
class ExceptionInfo:
    """
    Description of an error attached to an event.

    An error either wraps a single nested cause (``inner``) or, when it is
    an aggregate, a list of causes (``inner_exceptions``).
    """

    type_name: str
    message: str
    stack_trace: Optional[str] = None
    inner: Optional["ExceptionInfo"] = None
    inner_exceptions: Tuple["ExceptionInfo", ...] = ()
    is_aggregate: bool = False

    @classmethod
    def from_exception(cls, exc: BaseException, _depth: int = 0) -> "ExceptionInfo":
        exc_type = type(exc)
        if exc_type.__module__ == "builtins":
            type_name = exc_type.__qualname__
        else:
            type_name = f"{exc_type.__module__}.{exc_type.__qualname__}"

        stack_trace = None
        if exc.__traceback__ is not None:
            stack_trace = "".join(traceback.format_tb(exc.__traceback__)).rstrip("\n") or None

        if _depth >= MAX_CAPTURE_DEPTH:
            return cls(type_name=type_name, message=str(exc), stack_trace=stack_trace)

        if isinstance(exc, BaseExceptionGroup):
            return cls(
                type_name=type_name,
                message=exc.message,
                stack_trace=stack_trace,
                inner_exceptions=tuple(
                    cls.from_exception(inner, _depth + 1) for inner in exc.exceptions
                ),
                is_aggregate=True,
            )

        cause = exc.__cause__
        if cause is None and not exc.__suppress_context__:
            cause = exc.__context__
        inner = cls.from_exception(cause, _depth + 1) if cause is not None else None
        return cls(type_name=type_name, message=str(exc), stack_trace=stack_trace, inner=inner)


# --- Message templates --------------------------------------------------------

_TOKEN_RE = re.compile(
    r"\{\{|\}\}|\{(?P<hint>[@$]?)(?P<name>[A-Za-z0-9_]+)"
    r"(?:,(?P<align>-?\d+))?(?::(?P<format>[^{}]+))?\}"
)


def render_template(template: str, properties: Mapping[str, PropertyValue]) -> str:
    """Render a message template against an event's properties."""

    def replace(match: "re.Match[str]") -> str:
        token = match.group(0)
        if token == "{{":
            return "{"
        if token == "}}":
            return "}"

        value = properties.get(match.group("name"))
        if value is None:
            return token

        if match.group("hint") == "$" and isinstance(value, ScalarValue):
            rendered = ScalarValue(str(value.value)).render(match.group("format"))
        elif isinstance(value, ScalarValue):
            rendered = value.render(match.group("format"))
        else:
            rendered = str(value)

        align = match.group("align")
        if align:
            width = int(align)
            rendered = rendered.ljust(-width) if width < 0 else rendered.rjust(width)
        return rendered

    return _TOKEN_RE.sub(replace, template)


# --- Event --------------------------------------------------------------------


@dataclasses.dataclass(frozen=True)
class LogEvent:
    """A single structured log event."""

    timestamp: datetime
    level: LogLevel
    message_template: str
    properties: Mapping[str, PropertyValue] = dataclasses.field(default_factory=dict)
    exception: Optional[ExceptionInfo] = None
    rendered_message: Optional[str] = None

    def render_message(self) -> str:
        if self.rendered_message is not None:
            return self.rendered_message
        return render_template(self.message_template, self.properties)

    @classmethod
    def create(
        cls,
        level: Union[LogLevel, str, int],
        message_template: str,
        *,
        exception: Optional[Union[BaseException, ExceptionInfo]] = None,
        timestamp: Optional[datetime] = None,
        **properties: Any,
    ) -> "LogEvent":
        """Build an event, capturing keyword arguments as properties."""
        if isinstance(exception, BaseException):
            exception = ExceptionInfo.from_exception(exception)
        captured: Dict[str, PropertyValue] = {
            name: to_property_value(value) for name, value in properties.items()
        }
        return cls(
            timestamp=timestamp or datetime.now(timezone.utc),
            level=LogLevel.parse(level),
            message_template=message_template,
            properties=captured,
            exception=exception,
        )


def current_thread_id() -> int:
    # Same id space as LogRecord.thread
    return threading.get_ident()
