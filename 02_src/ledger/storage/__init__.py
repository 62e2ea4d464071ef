"""Storage module."""

from .query import ORDERINGS, SpanQuery
from .storage import IStorage, LedgerStore

__all__ = ["IStorage", "LedgerStore", "SpanQuery", "ORDERINGS"]
