"""
Storage

Modules:
- base: DocumentStore interface and lifecycle errors
- memory: In-memory DocumentStore with optional JSON snapshots
"""

from score_import.storage.base import DocumentStore, StoreClosedError
from score_import.storage.memory import MemoryStore

__all__ = ["DocumentStore", "StoreClosedError", "MemoryStore"]
