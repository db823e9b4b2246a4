"""
Fast path components for low-latency log ingestion.
"""

from .formatting import format_exception, format_properties_json, format_timestamp
from .writer import LogEventBatchWriter, WriteResult
from .batching import PeriodicBatchingSink

__all__ = [
    "format_exception",
    "format_properties_json",
    "format_timestamp",
    "LogEventBatchWriter",
    "WriteResult",
    "PeriodicBatchingSink",
]
