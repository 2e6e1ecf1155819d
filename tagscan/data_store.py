"""
Document store access for the scan notifier.

The production store is an external document database. This module defines
the small set of operations the pipeline needs from it and an in-memory
implementation seeded from JSON fixture files, used for local runs, the demo
and the tests.

Design decisions:
- Documents are plain dicts; models are built by the callers
- Collections are loaded lazily from ``<data_dir>/<collection>.json``
- Writes update in-memory state only, fixtures are never rewritten
- Every operation runs under one lock, so create-if-absent and
  compare-and-delete are atomic across threads
"""

import copy
import json
import logging
import operator
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional
from uuid import uuid4

logger = logging.getLogger("data_store")

# (field, op, value), e.g. ("createdAt", ">", threshold)
Filter = tuple[str, str, Any]

_OPERATORS = {
    "==": operator.eq,
    "!=": operator.ne,
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
}


class DocumentStore(ABC):
    """Operations the pipeline relies on. Implementations raise StoreError."""

    @abstractmethod
    def get_document(self, collection: str, doc_id: str) -> Optional[dict[str, Any]]:
        """Return the document or None when it does not exist."""

    @abstractmethod
    def query_documents(
        self,
        collection: str,
        filters: list[Filter],
        limit: Optional[int] = None,
        order_by: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        """Return documents matching every filter, optionally ordered and capped."""

    @abstractmethod
    def append_document(self, collection: str, fields: dict[str, Any]) -> str:
        """Add a document under a generated id and return that id."""

    @abstractmethod
    def create_document(self, collection: str, doc_id: str, fields: dict[str, Any]) -> bool:
        """Create ``doc_id`` only if absent. Returns False when it already exists."""

    @abstractmethod
    def delete_document(
        self,
        collection: str,
        doc_id: str,
        if_match: Optional[dict[str, Any]] = None,
    ) -> bool:
        """
        Delete ``doc_id``.

        With ``if_match``, only delete when every given field still has the
        given value. Returns True when a document was deleted.
        """


class InMemoryDocumentStore(DocumentStore):
    """
    Thread-safe in-memory document store backed by JSON fixtures.

    Each fixture file holds a list of documents with an ``id`` key.
    Collections without a fixture file start empty.
    """

    def __init__(self, data_dir: Optional[Path] = None):
        """
        Initialize the store.

        Args:
            data_dir: Directory containing ``<collection>.json`` fixtures.
                      Defaults to ./data relative to the project root.
        """
        if data_dir is None:
            data_dir = Path(__file__).parent.parent / "data"

        self.data_dir = Path(data_dir)
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._lock = threading.Lock()

    # =========================================================================
    # Loading (lazy)
    # =========================================================================

    def _load_json(self, collection: str) -> list[dict]:
        filepath = self.data_dir / f"{collection}.json"
        if not filepath.exists():
            return []
        with open(filepath, "r") as f:
            return json.load(f)

    def _collection(self, collection: str) -> dict[str, dict[str, Any]]:
        """Caller must hold the lock."""
        docs = self._collections.get(collection)
        if docs is None:
            docs = {}
            for raw in self._load_json(collection):
                raw = dict(raw)
                docs[raw.pop("id")] = raw
            self._collections[collection] = docs
            logger.debug(f"Loaded {len(docs)} documents into '{collection}'")
        return docs

    # =========================================================================
    # DocumentStore operations
    # =========================================================================

    def get_document(self, collection: str, doc_id: str) -> Optional[dict[str, Any]]:
        with self._lock:
            doc = self._collection(collection).get(doc_id)
            return copy.deepcopy(doc) if doc is not None else None

    def query_documents(
        self,
        collection: str,
        filters: list[Filter],
        limit: Optional[int] = None,
        order_by: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        with self._lock:
            matches = [
                {"id": doc_id, **copy.deepcopy(doc)}
                for doc_id, doc in self._collection(collection).items()
                if all(_matches(doc, f) for f in filters)
            ]
        if order_by is not None:
            matches.sort(key=lambda d: d[order_by])
        if limit is not None:
            matches = matches[:limit]
        return matches

    def append_document(self, collection: str, fields: dict[str, Any]) -> str:
        doc_id = uuid4().hex
        with self._lock:
            self._collection(collection)[doc_id] = copy.deepcopy(fields)
        return doc_id

    def create_document(self, collection: str, doc_id: str, fields: dict[str, Any]) -> bool:
        with self._lock:
            docs = self._collection(collection)
            if doc_id in docs:
                return False
            docs[doc_id] = copy.deepcopy(fields)
            return True

    def delete_document(
        self,
        collection: str,
        doc_id: str,
        if_match: Optional[dict[str, Any]] = None,
    ) -> bool:
        with self._lock:
            docs = self._collection(collection)
            doc = docs.get(doc_id)
            if doc is None:
                return False
            if if_match and any(doc.get(k) != v for k, v in if_match.items()):
                return False
            del docs[doc_id]
            return True

    # =========================================================================
    # Utility Methods
    # =========================================================================

    def count(self, collection: str) -> int:
        with self._lock:
            return len(self._collection(collection))

    def reload(self):
        """Drop in-memory state so the next access re-reads the fixtures."""
        with self._lock:
            self._collections = {}


def _matches(doc: dict[str, Any], flt: Filter) -> bool:
    field, op, value = flt
    if field not in doc or doc[field] is None:
        return False
    return _OPERATORS[op](doc[field], value)
