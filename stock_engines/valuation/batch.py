"""
stock_engines.valuation.batch -- Batch domain objects for the stock ledger.

Responsibility:
    Define immutable value objects for stock batches, the slices taken
    from them by a consuming operation, and the consumption result.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import stock_kernel/domain and stock_kernel/logging_config.
    The stateful StockLedger lives in stock_services/.

Invariants enforced:
    - Non-negative quantity and cost: Batch.__post_init__ rejects negatives.
    - Positive receipt quantity: Batch.create rejects quantity <= 0.
    - All value objects are frozen dataclasses; a consumed batch is
      replaced, never mutated.
    - Cost fidelity: ConsumptionResult.total_cost is the exact sum of
      quantity_taken * unit_cost over its lines (no rounding).

Failure modes:
    - ValueError from Batch.__post_init__ / Batch.create on invalid
      quantity or cost.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal

from stock_kernel.domain.values import EPSILON, ZERO, Numeric, to_decimal
from stock_kernel.logging_config import get_logger

logger = get_logger("engines.valuation.batch")


@dataclass(frozen=True, slots=True)
class Batch:
    """
    A lot of one product physically present at one location.

    ``unit_cost`` is the CUMP at receipt time and never changes while the
    batch lives.  ``sequence`` records insertion order and breaks FEFO
    ties between batches sharing an expiry date.
    """

    product_id: int
    location_id: int
    lot: str
    quantity: Decimal
    unit_cost: Decimal
    expiry_date: date
    source_ref: str
    sequence: int = 0

    def __post_init__(self) -> None:
        if self.quantity < 0:
            logger.error("batch_negative_quantity", extra={
                "product_id": self.product_id,
                "location_id": self.location_id,
                "lot": self.lot,
                "quantity": str(self.quantity),
            })
            raise ValueError(f"Batch quantity cannot be negative, got {self.quantity}")
        if self.unit_cost < 0:
            logger.error("batch_negative_cost", extra={
                "product_id": self.product_id,
                "location_id": self.location_id,
                "lot": self.lot,
                "unit_cost": str(self.unit_cost),
            })
            raise ValueError(f"Batch unit cost cannot be negative, got {self.unit_cost}")

    @property
    def value(self) -> Decimal:
        """Stock value held in this batch."""
        return self.quantity * self.unit_cost

    def with_quantity(self, quantity: Decimal) -> Batch:
        """Copy of this batch holding ``quantity``."""
        return replace(self, quantity=quantity)

    @classmethod
    def create(
        cls,
        product_id: int,
        location_id: int,
        lot: str,
        quantity: Numeric,
        unit_cost: Numeric,
        expiry_date: date,
        source_ref: str,
        sequence: int = 0,
    ) -> Batch:
        """Factory for a newly received batch.

        Preconditions:
            quantity > 0 and unit_cost >= 0.

        Raises:
            ValueError: If quantity <= 0 or unit_cost < 0.
        """
        qty = to_decimal(quantity)
        cost = to_decimal(unit_cost)
        if qty <= 0:
            logger.error("batch_invalid_receipt_quantity", extra={
                "product_id": product_id,
                "location_id": location_id,
                "lot": lot,
                "quantity": str(qty),
            })
            raise ValueError(f"Received quantity must be positive, got {qty}")
        return cls(
            product_id=product_id,
            location_id=location_id,
            lot=lot,
            quantity=qty,
            unit_cost=cost,
            expiry_date=expiry_date,
            source_ref=source_ref,
            sequence=sequence,
        )


@dataclass(frozen=True, slots=True)
class ConsumptionLine:
    """Slice taken from a single batch by a consuming operation."""

    lot: str
    quantity_taken: Decimal
    unit_cost: Decimal
    expiry_date: date
    source_ref: str

    @property
    def cost(self) -> Decimal:
        return self.quantity_taken * self.unit_cost

    @classmethod
    def from_batch(cls, batch: Batch, quantity_taken: Decimal) -> ConsumptionLine:
        return cls(
            lot=batch.lot,
            quantity_taken=quantity_taken,
            unit_cost=batch.unit_cost,
            expiry_date=batch.expiry_date,
            source_ref=batch.source_ref,
        )


@dataclass(frozen=True, slots=True)
class ConsumptionResult:
    """
    Result of consuming stock from the batches at one (product, location).

    ``shortfall`` is what could not be covered; a shortfall above
    ``epsilon`` (the tolerance the walk ran with) is a stock-insufficiency
    condition the caller must act on.
    """

    product_id: int
    location_id: int
    requested_quantity: Decimal
    lines: tuple[ConsumptionLine, ...]
    total_cost: Decimal
    shortfall: Decimal
    epsilon: Decimal = EPSILON

    @property
    def quantity_taken(self) -> Decimal:
        return sum((line.quantity_taken for line in self.lines), ZERO)

    @property
    def is_short(self) -> bool:
        """True if the request could not be covered within tolerance."""
        return self.shortfall > self.epsilon

    @property
    def average_unit_cost(self) -> Decimal:
        """Weighted average unit cost of the consumed slices."""
        taken = self.quantity_taken
        if taken == 0:
            return ZERO
        return self.total_cost / taken

    @classmethod
    def create(
        cls,
        product_id: int,
        location_id: int,
        requested_quantity: Decimal,
        lines: list[ConsumptionLine],
        shortfall: Decimal,
        epsilon: Decimal = EPSILON,
    ) -> ConsumptionResult:
        """Create result from the consumed slices; total cost is summed exactly."""
        total_cost = sum((line.cost for line in lines), ZERO)

        logger.debug("consumption_result_created", extra={
            "product_id": product_id,
            "location_id": location_id,
            "requested_quantity": str(requested_quantity),
            "line_count": len(lines),
            "total_cost": str(total_cost),
            "shortfall": str(shortfall),
        })

        return cls(
            product_id=product_id,
            location_id=location_id,
            requested_quantity=requested_quantity,
            lines=tuple(lines),
            total_cost=total_cost,
            shortfall=shortfall,
            epsilon=epsilon,
        )
