"""
Unit tests for sink configuration.
"""

from datetime import timedelta

import pytest

from logsink.config import (
    ExtensionColumn,
    JournalMode,
    SinkOptions,
    SynchronousMode,
    parse_duration,
)
from logsink.events import LogLevel
from logsink.exceptions import ConfigurationError


def test_defaults():
    """Defaults match the documented configuration."""
    options = SinkOptions()

    assert options.database_path == "logs.db"
    assert options.table_name == "Logs"
    assert options.minimum_level == LogLevel.VERBOSE
    assert options.store_timestamp_in_utc is True
    assert options.batch_size_limit == 100
    assert options.batch_period == timedelta(seconds=2)
    assert options.queue_limit == 10000
    assert options.cleanup_interval == timedelta(hours=1)
    assert options.journal_mode == JournalMode.WAL
    assert options.synchronous_mode == SynchronousMode.NORMAL
    assert options.retention_period is None
    assert options.retention_count is None
    assert options.max_database_size is None
    assert options.has_retention_policy() is False
    options.validate()


@pytest.mark.parametrize(
    "overrides, field_name",
    [
        ({"database_path": ""}, "database_path"),
        ({"database_path": "   "}, "database_path"),
        ({"table_name": ""}, "table_name"),
        ({"batch_size_limit": 0}, "batch_size_limit"),
        ({"batch_period": timedelta(0)}, "batch_period"),
        ({"queue_limit": 0}, "queue_limit"),
        ({"retention_count": 0}, "retention_count"),
        ({"retention_period": timedelta(seconds=-1)}, "retention_period"),
        ({"max_database_size": 0}, "max_database_size"),
        ({"cleanup_interval": timedelta(0)}, "cleanup_interval"),
        ({"max_message_length": 0}, "max_message_length"),
        ({"max_exception_length": -5}, "max_exception_length"),
        ({"max_properties_length": 0}, "max_properties_length"),
    ],
)
def test_validate_names_offending_field(overrides, field_name):
    """Invalid settings are rejected with the setting's name."""
    options = SinkOptions(**overrides)

    with pytest.raises(ConfigurationError) as exc_info:
        options.validate()

    assert exc_info.value.field_name == field_name
    assert field_name in str(exc_info.value)


@pytest.mark.parametrize(
    "columns",
    [
        [ExtensionColumn(column_name="", property_name="UserId")],
        [ExtensionColumn(column_name="UserId", property_name=" ")],
        [
            ExtensionColumn(column_name="UserId", property_name="UserId"),
            ExtensionColumn(column_name="userid", property_name="Other"),
        ],
        [ExtensionColumn(column_name="Message", property_name="Message")],
    ],
)
def test_validate_rejects_bad_extension_columns(columns):
    """Empty, duplicate and standard-clashing extension columns are rejected."""
    options = SinkOptions(extension_columns=columns)

    with pytest.raises(ConfigurationError) as exc_info:
        options.validate()

    assert exc_info.value.field_name == "extension_columns"


def test_configuration_error_is_value_error():
    with pytest.raises(ValueError):
        SinkOptions(batch_size_limit=-1).validate()


def test_clone_is_independent():
    """Mutating the original after cloning does not affect the copy."""
    original = SinkOptions(
        extension_columns=[ExtensionColumn("UserId", "UserId")],
        additional_connection_parameters={"timeout": "10"},
    )
    copy = original.clone()

    original.extension_columns.append(ExtensionColumn("Tenant", "Tenant"))
    original.additional_connection_parameters["cache"] = "shared"
    original.table_name = "Other"

    assert [c.column_name for c in copy.extension_columns] == ["UserId"]
    assert copy.additional_connection_parameters == {"timeout": "10"}
    assert copy.table_name == "Logs"


def test_memory_database_marker():
    assert SinkOptions(database_path=":memory:").is_memory_database is True
    assert SinkOptions(database_path="logs.db").is_memory_database is False


def test_from_mapping_accepts_camel_case():
    """Mapping keys may be camelCase with string values."""
    options = SinkOptions.from_mapping(
        {
            "databasePath": "/var/log/app.db",
            "tableName": "AppLogs",
            "restrictedToMinimumLevel": "Warning",
            "storeTimestampInUtc": "false",
            "batchSizeLimit": "250",
            "batchPeriod": "00:00:05",
            "retentionPeriod": "7.00:00:00",
            "retentionCount": 1000,
            "journalMode": "Truncate",
            "synchronousMode": "Full",
            "customColumns": [
                {"columnName": "UserId", "propertyName": "UserId", "createIndex": "true"},
            ],
        }
    )

    assert options.database_path == "/var/log/app.db"
    assert options.table_name == "AppLogs"
    assert options.minimum_level == LogLevel.WARNING
    assert options.store_timestamp_in_utc is False
    assert options.batch_size_limit == 250
    assert options.batch_period == timedelta(seconds=5)
    assert options.retention_period == timedelta(days=7)
    assert options.retention_count == 1000
    assert options.journal_mode == JournalMode.TRUNCATE
    assert options.synchronous_mode == SynchronousMode.FULL
    assert options.extension_columns == [
        ExtensionColumn(column_name="UserId", property_name="UserId", create_index=True)
    ]


def test_from_mapping_rejects_unknown_key():
    with pytest.raises(ConfigurationError) as exc_info:
        SinkOptions.from_mapping({"notASetting": 1})

    assert exc_info.value.field_name == "notASetting"


def test_from_mapping_rejects_bad_value():
    with pytest.raises(ConfigurationError) as exc_info:
        SinkOptions.from_mapping({"journal_mode": "sideways"})

    assert exc_info.value.field_name == "journal_mode"


def test_from_env(monkeypatch):
    """Options can be loaded from LOGSINK_* environment variables."""
    monkeypatch.setenv("LOGSINK_DATABASE_PATH", "/tmp/env-logs.db")
    monkeypatch.setenv("LOGSINK_BATCH_SIZE_LIMIT", "50")
    monkeypatch.setenv("LOGSINK_MINIMUM_LEVEL", "info")
    monkeypatch.setenv("LOGSINK_MAX_DATABASE_SIZE", "1048576")
    monkeypatch.setenv("LOGSINK_QUEUE_LIMIT", "none")

    options = SinkOptions.from_env()

    assert options.database_path == "/tmp/env-logs.db"
    assert options.batch_size_limit == 50
    assert options.minimum_level == LogLevel.INFORMATION
    assert options.max_database_size == 1048576
    assert options.queue_limit is None
    assert options.has_retention_policy() is True


@pytest.mark.parametrize(
    "value, expected",
    [
        (30, timedelta(seconds=30)),
        ("2.5", timedelta(seconds=2.5)),
        ("01:30:00", timedelta(hours=1, minutes=30)),
        ("1.02:00:00", timedelta(days=1, hours=2)),
        ("00:00:00.250", timedelta(milliseconds=250)),
        (timedelta(minutes=1), timedelta(minutes=1)),
    ],
)
def test_parse_duration(value, expected):
    assert parse_duration(value) == expected


def test_parse_duration_rejects_malformed():
    with pytest.raises(ValueError):
        parse_duration("1:2")
