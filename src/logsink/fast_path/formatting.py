"""
Value derivation for log rows: timestamps, truncation, exception text,
JSON properties and scalar extraction.
"""

import math
import uuid
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Any, List, Mapping, Optional

from ..events import (
    DictionaryValue,
    ExceptionInfo,
    PropertyValue,
    ScalarValue,
    SequenceValue,
    StructureValue,
)

# Properties with dedicated columns; never repeated in the JSON blob.
RESERVED_PROPERTIES = ("SourceContext", "ThreadId")

INNER_EXCEPTION_MARKER = "--- Inner Exception ---"
DEPTH_LIMIT_MARKER = "[Exception depth limit reached]"
MAX_EXCEPTION_DEPTH = 10

_NAMED_ESCAPES = {
    '"': '\\"',
    "\\": "\\\\",
    "\b": "\\b",
    "\f": "\\f",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
}


def format_timestamp(value: datetime, utc: bool) -> str:
    """
    Render a timestamp as fixed-width ISO-8601.

    UTC timestamps end in "Z", local ones carry their offset. Naive
    datetimes are taken to be local time. Fixed width keeps the text
    column ordered the same way as the instants it holds.
    """
    if utc:
        return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")
    return value.astimezone().isoformat(timespec="microseconds")


def truncate(text: str, limit: Optional[int]) -> str:
    """Cut text to at most ``limit`` characters; None means unlimited."""
    if limit is not None and len(text) > limit:
        return text[:limit]
    return text


# --- Exceptions ---------------------------------------------------------------


def format_exception(info: ExceptionInfo) -> str:
    lines: List[str] = []
    _format_exception(info, lines, 0)
    return "".join(line + "\n" for line in lines)


def _format_exception(info: ExceptionInfo, lines: List[str], depth: int) -> None:
    if depth > MAX_EXCEPTION_DEPTH:
        lines.append(DEPTH_LIMIT_MARKER)
        return

    lines.append(f"{info.type_name}: {info.message}")
    if info.stack_trace:
        lines.append(info.stack_trace)

    if info.is_aggregate:
        for inner in info.inner_exceptions:
            lines.append(INNER_EXCEPTION_MARKER)
            _format_exception(inner, lines, depth + 1)
    elif info.inner is not None:
        lines.append(INNER_EXCEPTION_MARKER)
        _format_exception(info.inner, lines, depth + 1)


# --- JSON ---------------------------------------------------------------------


def escape_json_string(text: str) -> str:
    out = []
    for ch in text:
        escaped = _NAMED_ESCAPES.get(ch)
        if escaped is not None:
            out.append(escaped)
        elif ch < " ":
            out.append(f"\\u{ord(ch):04X}")
        else:
            out.append(ch)
    return "".join(out)


def format_properties_json(properties: Mapping[str, PropertyValue]) -> str:
    """Serialize event properties to a compact JSON object string."""
    parts = []
    for name, value in properties.items():
        if name in RESERVED_PROPERTIES:
            continue
        parts.append(f'"{escape_json_string(name)}":{format_property_value(value)}')
    return "{" + ",".join(parts) + "}"


def format_property_value(value: PropertyValue) -> str:
    if isinstance(value, ScalarValue):
        return format_scalar(value.value)
    if isinstance(value, SequenceValue):
        return "[" + ",".join(format_property_value(e) for e in value.elements) + "]"
    if isinstance(value, StructureValue):
        members = (
            f'"{escape_json_string(name)}":{format_property_value(v)}'
            for name, v in value.properties
        )
        return "{" + ",".join(members) + "}"
    if isinstance(value, DictionaryValue):
        members = (
            f'"{escape_json_string(_dictionary_key(key))}":{format_property_value(v)}'
            for key, v in value.elements
        )
        return "{" + ",".join(members) + "}"
    return "null"


def _dictionary_key(key: ScalarValue) -> str:
    return "null" if key.value is None else str(key.value)


def format_scalar(value: Any) -> str:
    """Format a scalar as JSON, culture-invariant."""
    if value is None:
        return "null"
    if isinstance(value, str):
        return f'"{escape_json_string(value)}"'
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isfinite(value):
            return repr(value)
        # NaN/Infinity have no JSON literal
        return f'"{value}"'
    if isinstance(value, Decimal):
        if value.is_finite():
            return str(value)
        return f'"{value}"'
    if isinstance(value, (datetime, date, time)):
        return f'"{value.isoformat()}"'
    if isinstance(value, uuid.UUID):
        return f'"{value}"'
    return f'"{escape_json_string(str(value))}"'


# --- Scalar extraction --------------------------------------------------------


def get_scalar_value(value: PropertyValue) -> Any:
    """
    Reduce a property value to something SQLite can bind.

    Scalars yield their raw value; any other shape yields its string form
    with surrounding quote characters trimmed.
    """
    if isinstance(value, ScalarValue):
        return to_sqlite_value(value.value)
    return str(value).strip('"')


def to_sqlite_value(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bytes)):
        return value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return str(value)
