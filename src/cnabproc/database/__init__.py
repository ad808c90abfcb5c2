"""Database layer for cnabproc."""

from cnabproc.database.base import Database
from cnabproc.database.factories import create_sqlite_database

__all__ = ["Database", "create_sqlite_database"]
