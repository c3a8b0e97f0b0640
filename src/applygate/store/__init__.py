"""Record store contract and implementations."""

from __future__ import annotations

from .base import DuplicateKeyError, RecordStore
from .memory import InMemoryStore
from .sql import SqlAlchemyStore

__all__ = ["DuplicateKeyError", "RecordStore", "InMemoryStore", "SqlAlchemyStore"]
