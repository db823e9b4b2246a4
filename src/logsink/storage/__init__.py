"""
Storage layer: connection tuning, schema and retention.
"""

from .database import Columns, DatabaseManager
from .retention import RetentionManager

__all__ = [
    "Columns",
    "DatabaseManager",
    "RetentionManager",
]
