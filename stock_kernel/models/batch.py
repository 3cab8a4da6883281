"""
Module: stock_kernel.models.batch
Responsibility: ORM persistence for stock batches.  One row per live batch of
    a product at a location, carrying its lot, remaining quantity, lot-level
    unit cost (CUMP at receipt), expiry and originating document.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Lot uniqueness per (product, location): unique constraint
      uq_stock_batch_lot.
    - FEFO ordering support: (product_id, location_id, expiry_date, sequence)
      index matches the consumption order.
    - Quantities and costs are Numeric(38, 9), never floats.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import Date, Index, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import Base


class BatchModel(Base):
    """
    Persistent storage for a stock batch.

    Non-goals:
        - Does not validate quantities; Batch.__post_init__ does when a
          row is converted back to a value object.
    """

    __tablename__ = "stock_batches"

    __table_args__ = (
        UniqueConstraint("product_id", "location_id", "lot", name="uq_stock_batch_lot"),
        Index("idx_stock_batch_fefo", "product_id", "location_id", "expiry_date", "sequence"),
        Index("idx_stock_batch_source", "source_ref"),
    )

    product_id: Mapped[int] = mapped_column(Integer, nullable=False)
    location_id: Mapped[int] = mapped_column(Integer, nullable=False)
    lot: Mapped[str] = mapped_column(String(100), nullable=False)

    quantity: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    unit_cost: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    expiry_date: Mapped[date] = mapped_column(Date, nullable=False)
    source_ref: Mapped[str] = mapped_column(String(100), nullable=False)

    # Insertion order, breaks FEFO ties on equal expiry
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<Batch {self.lot}: product={self.product_id} location={self.location_id} "
            f"qty={self.quantity} @ {self.unit_cost}>"
        )
