"""
In-memory DocumentStore.

Used by tests and the command line importer. Documents are deep-copied on the
way in and out so callers can never mutate stored state by accident. An
optional JSON snapshot path makes the store survive restarts: it is loaded on
open() and written atomically on close().
"""

import copy
import json
from pathlib import Path

from score_import.storage.base import DocumentStore, StoreClosedError
from score_import.utils import atomic_write_json, setup_logging

# --- Module Logger ---
logger = setup_logging(__name__)

_MISSING = object()


def get_path(doc: dict, path: str):
    """Resolve a dotted path inside a document, or _MISSING."""
    current = doc
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current


def _compare(value, op: str, operand) -> bool:
    if op == "$in":
        return value is not _MISSING and value in operand
    if op == "$ne":
        return (None if value is _MISSING else value) != operand
    if op == "$exists":
        return (value is not _MISSING) == bool(operand)

    if value is _MISSING or value is None:
        return False

    if op == "$gt":
        return value > operand
    if op == "$gte":
        return value >= operand
    if op == "$lt":
        return value < operand
    if op == "$lte":
        return value <= operand

    raise ValueError(f"Unsupported query operator: {op}")


def matches(doc: dict, query: dict) -> bool:
    """
    Check whether a document satisfies a query.

    Args:
        doc: Stored document
        query: Query dict (see DocumentStore)

    Returns:
        True if every clause matches
    """
    for key, condition in query.items():
        if key == "$or":
            if not any(matches(doc, sub) for sub in condition):
                return False
            continue

        value = get_path(doc, key)

        if isinstance(condition, dict) and condition and all(k.startswith("$") for k in condition):
            if not all(_compare(value, op, operand) for op, operand in condition.items()):
                return False
        elif isinstance(value, list) and not isinstance(condition, list):
            # Scalar equality against an array field matches any element.
            if condition not in value:
                return False
        elif value is _MISSING or value != condition:
            return False

    return True


def _sort_docs(docs: list, sort) -> list:
    # Stable sorts applied from the last key to the first give a multi-key sort.
    for path, direction in reversed(sort):
        present = [d for d in docs if get_path(d, path) not in (_MISSING, None)]
        absent = [d for d in docs if get_path(d, path) in (_MISSING, None)]
        present.sort(key=lambda d: get_path(d, path), reverse=direction < 0)
        docs = present + absent
    return docs


class MemoryStore(DocumentStore):
    """DocumentStore backed by a dict of lists, optionally snapshotted to JSON."""

    def __init__(self, snapshot_path=None, seed: dict | None = None):
        self.snapshot_path = Path(snapshot_path) if snapshot_path else None
        self._collections: dict[str, list] = {}
        self._seed = seed or {}
        self._is_open = False

    @property
    def is_open(self) -> bool:
        return self._is_open

    async def open(self) -> None:
        if self._is_open:
            return

        if self.snapshot_path and self.snapshot_path.exists():
            with open(self.snapshot_path, encoding="utf-8") as f:
                self._collections = json.load(f)
            logger.info(f"Loaded store snapshot from {self.snapshot_path}")

        for name, docs in self._seed.items():
            self._collections.setdefault(name, []).extend(copy.deepcopy(docs))

        self._is_open = True

    async def close(self) -> None:
        if not self._is_open:
            return

        if self.snapshot_path:
            atomic_write_json(self._collections, self.snapshot_path)
            logger.info(f"Wrote store snapshot to {self.snapshot_path}")

        self._is_open = False

    def _check_open(self) -> None:
        if not self._is_open:
            raise StoreClosedError("Store is not open. Call open() before using it.")

    async def find(self, collection: str, query: dict, sort=None, limit=None) -> list:
        self._check_open()
        docs = [d for d in self._collections.get(collection, []) if matches(d, query)]

        if sort:
            docs = _sort_docs(docs, sort)

        if limit is not None:
            docs = docs[:limit]

        return copy.deepcopy(docs)

    async def insert_many(self, collection: str, docs: list) -> None:
        self._check_open()
        self._collections.setdefault(collection, []).extend(copy.deepcopy(docs))

    async def update_one(self, collection: str, query: dict, set_fields: dict, upsert: bool = False) -> bool:
        self._check_open()
        docs = self._collections.setdefault(collection, [])
        for doc in docs:
            if matches(doc, query):
                doc.update(copy.deepcopy(set_fields))
                return True

        if not upsert:
            return False

        new_doc = {k: v for k, v in query.items() if not k.startswith("$") and not isinstance(v, dict)}
        new_doc.update(copy.deepcopy(set_fields))
        docs.append(new_doc)
        return True
