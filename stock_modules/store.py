"""
Document Store (``stock_modules.store``).

Keyed in-memory storage for business documents.  Documents are frozen
dataclasses with an ``id`` attribute; an update replaces the stored
document with a new version.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from enum import Enum
from typing import Any

from stock_kernel.exceptions import DocumentStateError, DocumentNotFoundError
from stock_kernel.logging_config import get_logger

logger = get_logger("modules.store")


class DocumentKind(Enum):
    PURCHASE_ORDER = "purchase_order"
    ARRIVAL = "arrival"
    TRANSFER = "transfer"
    LOSS = "loss"
    INVENTORY = "inventory"
    SALE_CLOSURE = "sale_closure"
    SALES_ORDER = "sales_order"
    INVOICE = "invoice"
    RECIPE = "recipe"
    PRODUCTION_ORDER = "production_order"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ")


class DocumentStore:
    """Create / read / update / list documents per kind."""

    def __init__(self):
        self._documents: dict[DocumentKind, dict[Any, Any]] = {kind: {} for kind in DocumentKind}

    def add(self, kind: DocumentKind, document: Any) -> Any:
        """
        Store a new document.

        Raises:
            DocumentStateError: If a document with the same id exists.
        """
        bucket = self._documents[kind]
        if document.id in bucket:
            raise DocumentStateError(kind.label, document.id, "already exists")
        bucket[document.id] = document
        logger.debug("document_added", extra={"kind": kind.value, "document_id": str(document.id)})
        return document

    def get(self, kind: DocumentKind, document_id: Any) -> Any:
        try:
            return self._documents[kind][document_id]
        except KeyError:
            raise DocumentNotFoundError(kind.label, document_id) from None

    def update(self, kind: DocumentKind, document: Any) -> Any:
        """Replace a stored document with its new version."""
        bucket = self._documents[kind]
        if document.id not in bucket:
            raise DocumentNotFoundError(kind.label, document.id)
        bucket[document.id] = document
        logger.debug("document_updated", extra={"kind": kind.value, "document_id": str(document.id)})
        return document

    def list(
        self,
        kind: DocumentKind,
        predicate: Callable[[Any], bool] | None = None,
    ) -> list[Any]:
        """Documents of ``kind`` in insertion order, optionally filtered."""
        docs = self._documents[kind].values()
        if predicate is None:
            return list(docs)
        return [d for d in docs if predicate(d)]

    def __iter__(self) -> Iterator[DocumentKind]:
        return iter(self._documents)

    def count(self, kind: DocumentKind) -> int:
        return len(self._documents[kind])
