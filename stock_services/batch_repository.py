"""
stock_services.batch_repository -- SQL snapshot storage for the stock ledger.

Responsibility:
    Save a StockLedger's batches to the ``stock_batches`` table and load
    them back.  The in-memory ledger stays the single writer; the
    repository persists committed state between runs.

Architecture position:
    Services -- bridges the pure Batch value objects and BatchModel rows.
    Receives a SQLAlchemy Session by constructor injection and never
    commits it; the caller owns the transaction boundary (session_scope).

Failure modes:
    - IntegrityError on a duplicate lot per (product, location), which the
      ledger already prevents.
    - ValueError when a stored row holds a negative quantity or cost.
"""

from __future__ import annotations

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from stock_engines.valuation import Batch
from stock_kernel.logging_config import get_logger
from stock_kernel.models.batch import BatchModel
from stock_services.ledger_service import LedgerSnapshot, StockLedger

logger = get_logger("services.batch_repository")


class BatchRepository:
    """
    Persists ledger batches.

    Guarantees:
        - ``save_ledger`` replaces every stored row with the ledger's
          current batches.
        - ``load_ledger`` restores a ledger equal (batch by batch) to the
          one saved.
    """

    def __init__(self, session: Session):
        self.session = session

    def save_ledger(self, ledger: StockLedger) -> int:
        """Replace stored batches with the ledger content; returns the row count."""
        self.session.execute(delete(BatchModel))
        rows = [
            self._to_model(batch)
            for locations in ledger.snapshot().values()
            for batches in locations.values()
            for batch in batches
        ]
        self.session.add_all(rows)
        self.session.flush()
        logger.info("ledger_saved", extra={"batch_count": len(rows)})
        return len(rows)

    def load_ledger(self, ledger: StockLedger) -> StockLedger:
        """Restore ``ledger`` from the stored batches and return it."""
        snapshot: LedgerSnapshot = {}
        for batch in self.load_batches():
            locations = snapshot.setdefault(batch.product_id, {})
            locations[batch.location_id] = locations.get(batch.location_id, ()) + (batch,)
        ledger.restore(snapshot)
        return ledger

    def load_batches(
        self,
        product_id: int | None = None,
        location_id: int | None = None,
    ) -> list[Batch]:
        """Stored batches in insertion order, optionally filtered."""
        stmt = select(BatchModel).order_by(BatchModel.sequence)
        if product_id is not None:
            stmt = stmt.where(BatchModel.product_id == product_id)
        if location_id is not None:
            stmt = stmt.where(BatchModel.location_id == location_id)
        return [self._to_batch(row) for row in self.session.scalars(stmt)]

    @staticmethod
    def _to_model(batch: Batch) -> BatchModel:
        return BatchModel(
            product_id=batch.product_id,
            location_id=batch.location_id,
            lot=batch.lot,
            quantity=batch.quantity,
            unit_cost=batch.unit_cost,
            expiry_date=batch.expiry_date,
            source_ref=batch.source_ref,
            sequence=batch.sequence,
        )

    @staticmethod
    def _to_batch(row: BatchModel) -> Batch:
        return Batch(
            product_id=row.product_id,
            location_id=row.location_id,
            lot=row.lot,
            quantity=row.quantity,
            unit_cost=row.unit_cost,
            expiry_date=row.expiry_date,
            source_ref=row.source_ref,
            sequence=row.sequence,
        )
