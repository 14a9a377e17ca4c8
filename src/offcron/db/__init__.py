"""Database layer."""

from offcron.db.engine import Database
from offcron.db.models import Base, JobRecord, RunnerStateRecord
from offcron.db.table import Table, format_timestamp, parse_timestamp

__all__ = [
    # Engine
    "Database",
    "Table",
    "format_timestamp",
    "parse_timestamp",
    # Models
    "Base",
    "JobRecord",
    "RunnerStateRecord",
]
