"""
Unit tests for the event model: levels, property values, exceptions and templates.
"""

import logging
from dataclasses import dataclass

import pytest

from logsink.events import (
    DictionaryValue,
    ExceptionInfo,
    LogEvent,
    LogLevel,
    ScalarValue,
    SequenceValue,
    StructureValue,
    render_template,
    to_property_value,
)


@dataclass
class Point:
    x: int
    y: int


class TestLogLevel:
    def test_ordering_and_names(self):
        assert LogLevel.VERBOSE < LogLevel.DEBUG < LogLevel.INFORMATION
        assert LogLevel.WARNING < LogLevel.ERROR < LogLevel.FATAL
        assert int(LogLevel.INFORMATION) == 2
        assert LogLevel.INFORMATION.display_name == "Information"
        assert LogLevel.FATAL.display_name == "Fatal"

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("Information", LogLevel.INFORMATION),
            ("info", LogLevel.INFORMATION),
            ("WARN", LogLevel.WARNING),
            ("trace", LogLevel.VERBOSE),
            ("critical", LogLevel.FATAL),
            ("4", LogLevel.ERROR),
            (1, LogLevel.DEBUG),
            (LogLevel.FATAL, LogLevel.FATAL),
        ],
    )
    def test_parse(self, value, expected):
        assert LogLevel.parse(value) == expected

    def test_parse_unknown(self):
        with pytest.raises(KeyError):
            LogLevel.parse("loud")

    @pytest.mark.parametrize(
        "levelno, expected",
        [
            (logging.DEBUG, LogLevel.DEBUG),
            (logging.INFO, LogLevel.INFORMATION),
            (logging.WARNING, LogLevel.WARNING),
            (logging.ERROR, LogLevel.ERROR),
            (logging.CRITICAL, LogLevel.FATAL),
            (5, LogLevel.VERBOSE),
            (25, LogLevel.INFORMATION),
        ],
    )
    def test_from_python_level(self, levelno, expected):
        assert LogLevel.from_python_level(levelno) == expected

    def test_python_level_round_trip(self):
        for level in LogLevel:
            assert LogLevel.from_python_level(level.to_python_level()) == level


class TestPropertyValues:
    def test_capture_shapes(self):
        assert to_property_value(5) == ScalarValue(5)
        assert to_property_value(None) == ScalarValue(None)
        assert to_property_value([1, "a"]) == SequenceValue((ScalarValue(1), ScalarValue("a")))
        assert to_property_value({"k": 1}) == DictionaryValue(((ScalarValue("k"), ScalarValue(1)),))
        assert to_property_value(Point(1, 2)) == StructureValue(
            (("x", ScalarValue(1)), ("y", ScalarValue(2))), type_tag="Point"
        )

    def test_capture_passes_property_values_through(self):
        value = SequenceValue((ScalarValue(1),))
        assert to_property_value(value) is value

    def test_string_forms(self):
        assert str(ScalarValue("abc")) == '"abc"'
        assert str(ScalarValue(None)) == "null"
        assert str(SequenceValue((ScalarValue(1), ScalarValue(2)))) == "[1, 2]"
        assert str(StructureValue((("X", ScalarValue(1)),), type_tag="Point")) == "Point { X: 1 }"
        assert str(DictionaryValue(((ScalarValue("a"), ScalarValue(1)),))) == '[("a": 1)]'


class TestRenderTemplate:
    def test_strings_are_quoted(self):
        props = {"Name": ScalarValue("alice")}
        assert render_template("User {Name} signed in", props) == 'User "alice" signed in'

    def test_literal_format(self):
        props = {"Name": ScalarValue("alice")}
        assert render_template("User {Name:l}", props) == "User alice"

    def test_numbers_and_format(self):
        props = {"Elapsed": ScalarValue(3.14159), "Count": ScalarValue(42)}
        assert render_template("{Count} in {Elapsed:0.2f} ms", props) == "42 in 3.14 ms"

    def test_alignment(self):
        props = {"Count": ScalarValue(42)}
        assert render_template("[{Count,5}]", props) == "[   42]"
        assert render_template("[{Count,-5}]", props) == "[42   ]"

    def test_escaped_braces(self):
        assert render_template("{{literal}}", {}) == "{literal}"

    def test_missing_property_renders_token(self):
        assert render_template("Hello {Name}", {}) == "Hello {Name}"

    def test_destructure_and_stringify_hints(self):
        props = {"Point": to_property_value(Point(1, 2)), "Id": ScalarValue(7)}
        assert render_template("{@Point}", props) == "Point { x: 1, y: 2 }"
        assert render_template("{$Id}", props) == '"7"'


class TestExceptionInfo:
    def test_chained_exception(self):
        try:
            try:
                raise KeyError("inner")
            except KeyError as inner:
                raise ValueError("outer") from inner
        except ValueError as e:
            info = ExceptionInfo.from_exception(e)

        assert info.type_name == "ValueError"
        assert info.message == "outer"
        assert info.stack_trace is not None
        assert info.is_aggregate is False
        assert info.inner.type_name == "KeyError"
        assert info.inner.inner is None

    def test_suppressed_context_is_dropped(self):
        try:
            try:
                raise KeyError("inner")
            except KeyError:
                raise ValueError("outer") from None
        except ValueError as e:
            info = ExceptionInfo.from_exception(e)

        assert info.inner is None

    def test_exception_group_is_aggregate(self):
        group = ExceptionGroup("several", [ValueError("a"), TypeError("b"), KeyError("c")])

        info = ExceptionInfo.from_exception(group)

        assert info.is_aggregate is True
        assert info.message == "several"
        assert [i.type_name for i in info.inner_exceptions] == ["ValueError", "TypeError", "KeyError"]

    def test_non_builtin_type_is_qualified(self):
        class CustomError(Exception):
            pass

        info = ExceptionInfo.from_exception(CustomError("x"))

        assert info.type_name.endswith("CustomError")
        assert info.type_name.startswith(__name__)


class TestLogEvent:
    def test_create_captures_properties(self):
        event = LogEvent.create("Information", "Hello {Name}", Name="alice", Tags=["a"])

        assert event.level == LogLevel.INFORMATION
        assert event.properties["Name"] == ScalarValue("alice")
        assert isinstance(event.properties["Tags"], SequenceValue)
        assert event.timestamp.tzinfo is not None
        assert event.render_message() == 'Hello "alice"'

    def test_create_captures_exception(self):
        event = LogEvent.create(LogLevel.ERROR, "Failed", exception=RuntimeError("boom"))

        assert event.exception.type_name == "RuntimeError"
        assert event.exception.message == "boom"

    def test_rendered_message_takes_precedence(self):
        event = LogEvent.create(LogLevel.INFORMATION, "User %s")
        event = LogEvent(
            timestamp=event.timestamp,
            level=event.level,
            message_template="User %s",
            rendered_message="User alice",
        )

        assert event.render_message() == "User alice"
