"""
Shared plumbing for the document services.

Every service is composed from the same collaborators (ledger, catalog,
document store, clock, id generator, config), all injected.
"""

from __future__ import annotations

from dataclasses import replace
from enum import Enum
from typing import Any

from stock_config.schema import LedgerConfig
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.ids import IdGenerator, SequentialIdGenerator
from stock_kernel.exceptions import ReferenceNotFoundError
from stock_kernel.logging_config import LogContext
from stock_modules.catalog import Catalog, Product, SalesUnit
from stock_modules.store import DocumentKind, DocumentStore
from stock_modules.workflows import Workflow
from stock_services.ledger_service import LedgerTransaction, StockLedger


class DocumentService:
    """Base class: holds the injected collaborators."""

    def __init__(
        self,
        ledger: StockLedger,
        catalog: Catalog,
        store: DocumentStore,
        clock: Clock | None = None,
        ids: IdGenerator | None = None,
        config: LedgerConfig | None = None,
    ):
        self._ledger = ledger
        self._catalog = catalog
        self._store = store
        self._clock = clock or SystemClock()
        self._ids = ids or SequentialIdGenerator()
        self._config = config or ledger.config

    def _advance(
        self,
        workflow: Workflow,
        kind: DocumentKind,
        document: Any,
        target: Enum,
        **changes: Any,
    ) -> Any:
        """Check the transition, then store the new document version."""
        workflow.require(document.id, document.status, target)
        updated = replace(document, status=target, **changes)
        return self._store.update(kind, updated)

    def _bind(self, document_id: str, operation: str):
        return LogContext.bind(document_id=document_id, operation=operation)

    # Lookups that turn a missing reference into a transaction problem so
    # every bad line is reported at once.

    def _product_in(self, tx: LedgerTransaction, product_id: int) -> Product | None:
        try:
            return self._catalog.product(product_id)
        except ReferenceNotFoundError:
            tx.reject_reference("product", product_id)
            return None

    def _sales_unit_in(self, tx: LedgerTransaction, unit_id: int) -> SalesUnit | None:
        try:
            unit = self._catalog.sales_unit(unit_id)
        except ReferenceNotFoundError:
            tx.reject_reference("sales unit", unit_id)
            return None
        return unit if self._product_in(tx, unit.base_product_id) else None
