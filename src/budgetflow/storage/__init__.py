"""Persistent storage for account links and classified transactions."""

from .base import PersistentStore
from .duckdb_store import DuckDBStore

__all__ = ["DuckDBStore", "PersistentStore"]
