"""
stock_engines.valuation.fefo -- FEFO batch consumption and weighted-average cost.

Responsibility:
    The pure costing algorithm shared by every consuming operation (sale,
    delivery, transfer dispatch, loss, negative count adjustment,
    production input) and the CUMP computations used when a new batch is
    created from a blend of existing stock.

Architecture position:
    Engines -- pure functions over tuples of frozen Batch objects.  The
    caller owns the state; these functions return the new collection
    instead of mutating the one they were given.

Algorithm (consume_fefo):
    1. Order batches by expiry date ascending.  Ties keep insertion
       order (Batch.sequence, then position in the collection); the sort
       is stable.
    2. Walk the ordered batches taking min(batch.quantity, remaining)
       from each and adding taken * unit_cost to the total cost.
    3. Stop as soon as remaining <= epsilon or batches run out.
    4. Prune every batch left with quantity <= epsilon.
    5. shortfall = max(0, remaining).

Invariants enforced:
    - quantity_taken + shortfall == requested (exact in Decimal).
    - Sum of batch quantities after = before - quantity_taken, less any
      sub-epsilon residue removed by pruning.
    - No batch in the returned collection has quantity <= epsilon.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from decimal import Decimal

from stock_engines.valuation.batch import Batch, ConsumptionLine, ConsumptionResult
from stock_kernel.domain.values import EPSILON, ZERO, Numeric, to_decimal
from stock_kernel.logging_config import get_logger

logger = get_logger("engines.valuation.fefo")


def _fefo_key(batch: Batch) -> tuple:
    return (batch.expiry_date, batch.sequence)


def fefo_order(batches: Iterable[Batch]) -> list[Batch]:
    """Batches in consumption order: earliest expiry first, stable on ties."""
    return sorted(batches, key=_fefo_key)


def consume_fefo(
    batches: Sequence[Batch],
    product_id: int,
    location_id: int,
    quantity: Numeric,
    epsilon: Decimal = EPSILON,
) -> tuple[ConsumptionResult, tuple[Batch, ...]]:
    """
    Consume ``quantity`` from ``batches`` earliest-expiry-first.

    Preconditions:
        quantity >= 0.

    Postconditions:
        Returns the consumption result and the remaining collection,
        pruned of batches at or below ``epsilon``.  The input sequence is
        not modified.

    Raises:
        ValueError: If quantity is negative.
    """
    requested = to_decimal(quantity)
    if requested < 0:
        raise ValueError(f"Consumed quantity cannot be negative, got {requested}")

    remaining = requested
    lines: list[ConsumptionLine] = []
    current = list(batches)

    order = sorted(range(len(current)), key=lambda i: _fefo_key(current[i]))
    for index in order:
        if remaining <= epsilon:
            break
        batch = current[index]
        taken = min(batch.quantity, remaining)
        if taken <= 0:
            continue
        lines.append(ConsumptionLine.from_batch(batch, taken))
        current[index] = batch.with_quantity(batch.quantity - taken)
        remaining -= taken

    # Storage order is kept; pruning applies to the whole collection.
    after = tuple(b for b in current if b.quantity > epsilon)

    shortfall = max(ZERO, remaining)
    result = ConsumptionResult.create(
        product_id=product_id,
        location_id=location_id,
        requested_quantity=requested,
        lines=lines,
        shortfall=shortfall,
        epsilon=epsilon,
    )

    if result.is_short:
        logger.info("fefo_consumption_short", extra={
            "product_id": product_id,
            "location_id": location_id,
            "requested_quantity": str(requested),
            "shortfall": str(shortfall),
        })

    return result, after


def total_quantity(batches: Iterable[Batch]) -> Decimal:
    """Sum of batch quantities."""
    return sum((b.quantity for b in batches), ZERO)


def total_value(batches: Iterable[Batch]) -> Decimal:
    """Sum of quantity * unit_cost over the batches."""
    return sum((b.value for b in batches), ZERO)


def weighted_average_cost(batches: Sequence[Batch]) -> Decimal | None:
    """
    CUMP of a collection: sum(q * c) / sum(q).

    Returns None when the collection holds no quantity (0/0); the caller
    decides the fallback.
    """
    qty = total_quantity(batches)
    if qty <= 0:
        return None
    return total_value(batches) / qty


def production_unit_cost(total_component_cost: Numeric, actual_quantity: Numeric) -> Decimal:
    """
    Unit cost of a production output batch: total component cost / quantity.

    Raises:
        ValueError: If actual_quantity <= 0.
    """
    qty = to_decimal(actual_quantity)
    if qty <= 0:
        raise ValueError(f"Produced quantity must be positive, got {qty}")
    return to_decimal(total_component_cost) / qty
