"""
Exceptions raised by the SQLite log sink.

Configuration problems are reported eagerly, when a sink is built.
Write failures only escape the sink when the caller opted in with
``throw_on_error``; everything else is reported through the error
callback and the ``logsink`` loggers.
"""

import logging

logger = logging.getLogger(__name__)


class LogSinkError(Exception):
    """Base class for all sink errors."""


class ConfigurationError(LogSinkError, ValueError):
    """
    Raised when a sink setting fails validation.

    The name of the offending setting is kept on ``field_name`` so that
    callers (and tests) can tell exactly which value was rejected.
    """

    def __init__(self, field_name: str, message: str):
        self.field_name = field_name
        super().__init__(f"{field_name}: {message}")


class SinkWriteError(LogSinkError):
    """Raised when a batch could not be written and throw_on_error is set."""

    def __init__(self, event_count: int, details: str = ""):
        self.event_count = event_count
        msg = f"Failed to write batch of {event_count} event(s)"
        if details:
            msg += f": {details}"
        super().__init__(msg)


def report_error(on_error, error: BaseException) -> None:
    """Invoke an error callback, logging (not raising) anything it throws."""
    if on_error is None:
        return
    try:
        on_error(error)
    except Exception as callback_error:
        logger.warning(f"Error callback raised: {callback_error}")
