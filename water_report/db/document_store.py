from __future__ import annotations

import copy
import secrets
import string
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from ..errors import DocumentStoreError

"""Document store contract and the in-memory backend.

The store is addressed by collection name and document id. Every put replaces
the whole document (create-or-replace); there is no field-level merge. A
delete_batch is atomic within one collection only.

MemoryDocumentStore backs mock mode (no database connection) and the tests.
"""

__all__ = [
    "Document",
    "DocumentStore",
    "DocumentStoreError",
    "MemoryDocumentStore",
    "generate_id",
]

_ID_ALPHABET = string.ascii_letters + string.digits
AUTO_ID_LENGTH = 20


def generate_id() -> str:
    """20 character alphanumeric id (same shape as Firestore auto ids)."""
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(AUTO_ID_LENGTH))


@dataclass(frozen=True)
class Document:
    id: str
    fields: dict[str, Any]


class DocumentStore(ABC):
    """Opaque key-value document collection."""

    @abstractmethod
    def list(self, collection: str, filters: Mapping[str, Any] | None = None) -> list[Document]:
        """Documents of ``collection`` ordered by id; ``filters`` are field equality predicates."""

    @abstractmethod
    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        """Fields of one document, or None when it does not exist."""

    @abstractmethod
    def put(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> None:
        """Create or fully replace one document."""

    @abstractmethod
    def delete_batch(self, collection: str, doc_ids: Iterable[str]) -> int:
        """Delete the given documents atomically; returns the number deleted."""

    def new_id(self, collection: str) -> str:
        return generate_id()

    def close(self) -> None:  # pragma: no cover - nothing to release by default
        pass

    def __enter__(self) -> DocumentStore:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


def _matches(fields: Mapping[str, Any], filters: Mapping[str, Any] | None) -> bool:
    if not filters:
        return True
    return all(key in fields and fields[key] == value for key, value in filters.items())


class MemoryDocumentStore(DocumentStore):
    """Process-local store. Documents are deep-copied in and out."""

    def __init__(self, initial: Mapping[str, Mapping[str, Mapping[str, Any]]] | None = None) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        for collection, docs in (initial or {}).items():
            for doc_id, fields in docs.items():
                self.put(collection, doc_id, fields)

    def list(self, collection: str, filters: Mapping[str, Any] | None = None) -> list[Document]:
        docs = self._collections.get(collection, {})
        return [
            Document(id=doc_id, fields=copy.deepcopy(fields))
            for doc_id, fields in sorted(docs.items())
            if _matches(fields, filters)
        ]

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        fields = self._collections.get(collection, {}).get(doc_id)
        return copy.deepcopy(fields) if fields is not None else None

    def put(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> None:
        if not doc_id:
            raise DocumentStoreError(f"empty document id for collection {collection}")
        self._collections.setdefault(collection, {})[doc_id] = copy.deepcopy(dict(fields))

    def delete_batch(self, collection: str, doc_ids: Iterable[str]) -> int:
        docs = self._collections.get(collection, {})
        ids = [d for d in doc_ids if d in docs]
        for doc_id in ids:
            del docs[doc_id]
        return len(ids)

    def collections(self) -> list[str]:
        return sorted(c for c, docs in self._collections.items() if docs)
