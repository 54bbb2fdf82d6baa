"""In-process document store with the same surface as the MongoDB adapter."""

from __future__ import annotations

import copy
import threading
from typing import Any, Dict, List, Optional, Tuple


def _matches(doc: Dict[str, Any], filter: Dict[str, Any]) -> bool:
    return all(doc.get(key) == value for key, value in filter.items())


class InMemoryCollection:
    def __init__(self, name: str, store: "InMemoryDocumentStore") -> None:
        self.name = name
        self._store = store
        self._docs: List[Dict[str, Any]] = []

    def find_one(self, filter: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        with self._store._lock:
            for doc in self._docs:
                if _matches(doc, filter):
                    return copy.deepcopy(doc)
        return None

    def find(self, filter: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        with self._store._lock:
            return [copy.deepcopy(d) for d in self._docs if _matches(d, filter or {})]

    def insert_one(self, doc: Dict[str, Any]) -> None:
        with self._store._lock:
            self._docs.append(copy.deepcopy(doc))
            self._store.operations.append(("insert", self.name))

    def replace_one(self, filter: Dict[str, Any], doc: Dict[str, Any]) -> None:
        with self._store._lock:
            for i, existing in enumerate(self._docs):
                if _matches(existing, filter):
                    self._docs[i] = copy.deepcopy(doc)
                    break
            self._store.operations.append(("replace", self.name))

    def save(self) -> None:
        with self._store._lock:
            self._store.operations.append(("save", self.name))

    def __len__(self) -> int:
        return len(self._docs)


class InMemoryDocumentStore:
    """Dictionary-backed store.

    Collections are created on first ``get_collection``. ``operations`` records
    every write as ``(op, collection_name)`` in call order.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._collections: Dict[str, InMemoryCollection] = {}
        self.operations: List[Tuple[str, str]] = []

    def get_collection(self, name: str) -> InMemoryCollection:
        with self._lock:
            if name not in self._collections:
                self._collections[name] = InMemoryCollection(name, self)
            return self._collections[name]

    def create_collection(self, name: str) -> InMemoryCollection:
        return self.get_collection(name)

    def has_collection(self, name: str) -> bool:
        with self._lock:
            return name in self._collections

    def collection_names(self) -> List[str]:
        with self._lock:
            return list(self._collections)

    def writes_to(self, name: str) -> int:
        """Number of insert/replace operations against one collection."""
        return sum(1 for op, coll in self.operations if coll == name and op in ("insert", "replace"))
