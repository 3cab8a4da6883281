"""
stock_services.ledger_service -- Batch inventory ledger with FEFO costing.

Responsibility:
    Hold, per (product, location), the collection of stock batches and
    expose the receive / consume / count-adjustment operations that every
    business document uses.  Multi-line business operations stage their
    changes in a LedgerTransaction and commit them all-or-nothing.

Architecture position:
    Services -- stateful orchestration over the pure FEFO engine in
    stock_engines.valuation.  Owns one aggregate: the stock ledger.  No
    other component mutates batches.

Invariants enforced:
    - Non-negativity: batches are frozen with quantity >= 0; consumption
      prunes batches at or below epsilon.
    - Lot uniqueness: a lot appears at most once per (product, location);
      DuplicateLotError otherwise.
    - All-or-nothing: a transaction holding any problem (shortfall or
      unresolved reference) cannot commit; the ledger is left untouched.
    - Copy-on-write: a transaction copies only the slices it touches and
      replaces them in the ledger in a single step on commit.

Failure modes:
    - StockInsufficiencyError from commit() when a consume fell short.
    - ReferenceNotFoundError from commit() when a line was rejected for an
      unknown product, sales unit or location.
    - DuplicateLotError from receive().
    - ValueError from receive() on quantity <= epsilon or negative cost.
    - RuntimeError when a committed or rolled-back transaction is reused.

Usage:
    ledger = StockLedger(config)
    ledger.receive(1, 1, Decimal("100"), Decimal("5500"), "A", date(2025, 8, 8), "BR-1")

    with ledger.transaction() as tx:
        for line in closure.lines:
            tx.consume(line.product_id, store_id, line.quantity)
    # commit on exit; StockInsufficiencyError if any line fell short
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from types import TracebackType

from stock_config.schema import LedgerConfig
from stock_engines.valuation import (
    Batch,
    ConsumptionResult,
    consume_fefo,
    total_quantity,
    total_value,
    weighted_average_cost,
)
from stock_kernel.domain.values import Numeric, to_decimal
from stock_kernel.exceptions import (
    DuplicateLotError,
    LineProblem,
    ReferenceNotFoundError,
    StockInsufficiencyError,
    reference_problem,
    shortage_problem,
)
from stock_kernel.logging_config import get_logger

logger = get_logger("services.ledger")

SliceKey = tuple[int, int]
LedgerSnapshot = dict[int, dict[int, tuple[Batch, ...]]]


@dataclass(frozen=True, slots=True)
class CountAdjustment:
    """
    Outcome of reconciling a physical count with the theoretical stock.

    Exactly one of ``loss`` (gap < 0) or ``gain_batch`` (gap > 0) is set;
    both are None when the count matches.
    """

    product_id: int
    location_id: int
    gap: Decimal
    loss: ConsumptionResult | None = None
    gain_batch: Batch | None = None

    @property
    def loss_value(self) -> Decimal:
        return self.loss.total_cost if self.loss is not None else Decimal("0")

    @property
    def is_noop(self) -> bool:
        return self.loss is None and self.gain_batch is None


class StockLedger:
    """
    Stock ledger: product -> location -> batches.

    Contract:
        Receives its LedgerConfig via constructor injection.
    Guarantees:
        - ``receive`` appends one batch and commits immediately.
        - ``consume`` commits only when the request is fully covered; on a
          shortfall the result is returned and the ledger is unchanged.
        - ``transaction`` opens a staging area for multi-line operations.
    Non-goals:
        - Does not resolve catalog references or create business
          documents; that is the document services' responsibility.
        - No locking: single-threaded use only.
    """

    def __init__(self, config: LedgerConfig | None = None):
        self.config = config or LedgerConfig()
        self._stock: LedgerSnapshot = {}
        self._sequence = 0

    # =========================================================================
    # Queries
    # =========================================================================

    def batches(self, product_id: int, location_id: int) -> tuple[Batch, ...]:
        """Batches held at (product, location), in storage order."""
        return self._stock.get(product_id, {}).get(location_id, ())

    def on_hand(self, product_id: int, location_id: int) -> Decimal:
        """Total quantity at (product, location)."""
        return total_quantity(self.batches(product_id, location_id))

    def stock_value(self, product_id: int, location_id: int) -> Decimal:
        """Total value (quantity * lot cost) at (product, location)."""
        return total_value(self.batches(product_id, location_id))

    def weighted_average_cost(self, product_id: int, location_id: int) -> Decimal | None:
        """CUMP of the batches at (product, location); None when empty."""
        return weighted_average_cost(self.batches(product_id, location_id))

    def product_ids(self) -> list[int]:
        return sorted(p for p, locations in self._stock.items() if any(locations.values()))

    def location_ids(self, product_id: int) -> list[int]:
        return sorted(l for l, batches in self._stock.get(product_id, {}).items() if batches)

    def snapshot(self) -> LedgerSnapshot:
        """Copy of the ledger structure.  Batches are immutable and shared."""
        return {
            product_id: {loc: batches for loc, batches in locations.items() if batches}
            for product_id, locations in self._stock.items()
        }

    def restore(self, snapshot: Mapping[int, Mapping[int, tuple[Batch, ...]]]) -> None:
        """Replace the whole ledger content, e.g. when loading from storage."""
        self._stock = {
            product_id: {loc: tuple(batches) for loc, batches in locations.items()}
            for product_id, locations in snapshot.items()
        }
        sequences = [
            b.sequence
            for locations in self._stock.values()
            for batches in locations.values()
            for b in batches
        ]
        self._sequence = max(sequences, default=0)
        logger.info("ledger_restored", extra={
            "product_count": len(self._stock),
            "batch_count": len(sequences),
        })

    # =========================================================================
    # Single-step operations
    # =========================================================================

    def receive(
        self,
        product_id: int,
        location_id: int,
        quantity: Numeric,
        unit_cost: Numeric,
        lot: str,
        expiry_date: date,
        source_ref: str,
    ) -> Batch:
        """Receive one batch and commit it."""
        with self.transaction() as tx:
            return tx.receive(
                product_id, location_id, quantity, unit_cost, lot, expiry_date, source_ref
            )

    def consume(
        self,
        product_id: int,
        location_id: int,
        quantity: Numeric,
    ) -> ConsumptionResult:
        """
        Consume FEFO at (product, location).

        Postconditions:
            If ``result.is_short`` the ledger is unchanged; otherwise the
            consumed quantities are committed.
        """
        tx = self.transaction()
        result = tx.consume(product_id, location_id, quantity)
        if result.is_short:
            tx.rollback()
        else:
            tx.commit()
        return result

    def adjust_for_count(
        self,
        product_id: int,
        location_id: int,
        theoretical_qty: Numeric,
        physical_qty: Numeric,
        fallback_unit_cost: Numeric,
        lot: str,
        source_ref: str,
    ) -> CountAdjustment:
        """Reconcile one count line and commit (see LedgerTransaction.adjust_for_count)."""
        with self.transaction() as tx:
            return tx.adjust_for_count(
                product_id, location_id, theoretical_qty, physical_qty,
                fallback_unit_cost, lot, source_ref,
            )

    def transaction(self) -> LedgerTransaction:
        """Open a staging transaction over this ledger."""
        return LedgerTransaction(self)

    # =========================================================================
    # Internal
    # =========================================================================

    def _next_sequence(self) -> int:
        self._sequence += 1
        return self._sequence

    def _apply(self, staged: Mapping[SliceKey, tuple[Batch, ...]]) -> None:
        for (product_id, location_id), batches in staged.items():
            locations = self._stock.setdefault(product_id, {})
            if batches:
                locations[location_id] = batches
            else:
                locations.pop(location_id, None)
                if not locations:
                    del self._stock[product_id]


class LedgerTransaction:
    """
    Staged set of ledger mutations applied atomically on commit.

    Contract:
        Reads through the transaction see the staged state; the ledger
        itself only changes in ``commit``.  Every consume that falls
        short and every ``reject`` call records a LineProblem; a
        transaction with problems refuses to commit.
    Guarantees:
        - Only the (product, location) slices touched are copied.
        - ``commit`` either applies every staged slice or none.
        - Used as a context manager it commits on normal exit and
          discards on exception.
    """

    def __init__(self, ledger: StockLedger):
        self._ledger = ledger
        self._staged: dict[SliceKey, tuple[Batch, ...]] = {}
        self._problems: list[LineProblem] = []
        self._state = "open"

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def problems(self) -> tuple[LineProblem, ...]:
        return tuple(self._problems)

    @property
    def has_problems(self) -> bool:
        return bool(self._problems)

    @property
    def is_open(self) -> bool:
        return self._state == "open"

    @property
    def touched(self) -> frozenset[SliceKey]:
        """Slices staged by this transaction."""
        return frozenset(self._staged)

    def _ensure_open(self) -> None:
        if self._state != "open":
            raise RuntimeError(f"Ledger transaction already {self._state}")

    # -------------------------------------------------------------------------
    # Staged reads
    # -------------------------------------------------------------------------

    def batches(self, product_id: int, location_id: int) -> tuple[Batch, ...]:
        key = (product_id, location_id)
        if key in self._staged:
            return self._staged[key]
        return self._ledger.batches(product_id, location_id)

    def on_hand(self, product_id: int, location_id: int) -> Decimal:
        return total_quantity(self.batches(product_id, location_id))

    def weighted_average_cost(self, product_id: int, location_id: int) -> Decimal | None:
        return weighted_average_cost(self.batches(product_id, location_id))

    # -------------------------------------------------------------------------
    # Staged writes
    # -------------------------------------------------------------------------

    def receive(
        self,
        product_id: int,
        location_id: int,
        quantity: Numeric,
        unit_cost: Numeric,
        lot: str,
        expiry_date: date,
        source_ref: str,
    ) -> Batch:
        """
        Stage a new batch at (product, location).

        Raises:
            ValueError: If quantity is at or below epsilon, or unit_cost < 0.
            DuplicateLotError: If the lot is already held there.
        """
        self._ensure_open()
        epsilon = self._ledger.config.epsilon
        if to_decimal(quantity) <= epsilon:
            logger.error("ledger_receipt_below_epsilon", extra={
                "product_id": product_id,
                "location_id": location_id,
                "lot": lot,
                "quantity": str(quantity),
                "epsilon": str(epsilon),
            })
            raise ValueError(
                f"Received quantity must be above {epsilon}, got {quantity}"
            )
        current = self.batches(product_id, location_id)
        if any(b.lot == lot for b in current):
            logger.warning("ledger_duplicate_lot", extra={
                "product_id": product_id,
                "location_id": location_id,
                "lot": lot,
            })
            raise DuplicateLotError(product_id, location_id, lot)

        batch = Batch.create(
            product_id=product_id,
            location_id=location_id,
            lot=lot,
            quantity=quantity,
            unit_cost=unit_cost,
            expiry_date=expiry_date,
            source_ref=source_ref,
            sequence=self._ledger._next_sequence(),
        )
        self._staged[(product_id, location_id)] = current + (batch,)

        logger.info("ledger_batch_received", extra={
            "product_id": product_id,
            "location_id": location_id,
            "lot": lot,
            "quantity": str(batch.quantity),
            "unit_cost": str(batch.unit_cost),
            "expiry_date": expiry_date.isoformat(),
            "source_ref": source_ref,
        })
        return batch

    def consume(
        self,
        product_id: int,
        location_id: int,
        quantity: Numeric,
        unit: str = "",
        product_name: str | None = None,
    ) -> ConsumptionResult:
        """
        Stage a FEFO consumption at (product, location).

        A shortfall above epsilon is recorded as a problem; the staged
        slice still reflects the drained batches so later lines of the
        same transaction see them.
        """
        self._ensure_open()
        result, remaining = consume_fefo(
            self.batches(product_id, location_id),
            product_id,
            location_id,
            quantity,
            epsilon=self._ledger.config.epsilon,
        )
        self._staged[(product_id, location_id)] = remaining

        if result.is_short:
            self._problems.append(shortage_problem(
                product_id, location_id, result.shortfall, unit, product_name,
            ))
            logger.warning("ledger_consumption_short", extra={
                "product_id": product_id,
                "location_id": location_id,
                "requested_quantity": str(result.requested_quantity),
                "shortfall": str(result.shortfall),
            })
        else:
            logger.info("ledger_batches_consumed", extra={
                "product_id": product_id,
                "location_id": location_id,
                "quantity": str(result.quantity_taken),
                "total_cost": str(result.total_cost),
                "lots": [line.lot for line in result.lines],
            })
        return result

    def adjust_for_count(
        self,
        product_id: int,
        location_id: int,
        theoretical_qty: Numeric,
        physical_qty: Numeric,
        fallback_unit_cost: Numeric,
        lot: str,
        source_ref: str,
    ) -> CountAdjustment:
        """
        Stage the stock correction for one counted line.

        gap = physical - theoretical.  A negative gap is consumed FEFO (its
        cost is the loss value); a positive gap becomes one batch expiring
        at the configured far-future date, costed at the location's
        weighted average, or at ``fallback_unit_cost`` when the location
        holds no stock.  A gap within epsilon changes nothing.
        """
        self._ensure_open()
        gap = to_decimal(physical_qty) - to_decimal(theoretical_qty)
        if abs(gap) <= self._ledger.config.epsilon:
            return CountAdjustment(product_id, location_id, gap)

        if gap < 0:
            loss = self.consume(product_id, location_id, -gap)
            return CountAdjustment(product_id, location_id, gap, loss=loss)

        unit_cost = self.weighted_average_cost(product_id, location_id)
        if unit_cost is None:
            # 0/0: the base-price fallback is business policy pending confirmation
            unit_cost = to_decimal(fallback_unit_cost)
            logger.warning("ledger_count_gain_cost_fallback", extra={
                "product_id": product_id,
                "location_id": location_id,
                "fallback_unit_cost": str(unit_cost),
            })
        gain = self.receive(
            product_id,
            location_id,
            gap,
            unit_cost,
            lot,
            self._ledger.config.inventory_gain_expiry,
            source_ref,
        )
        return CountAdjustment(product_id, location_id, gap, gain_batch=gain)

    def reject(self, problem: LineProblem) -> None:
        """Record a problem that prevents this transaction from committing."""
        self._ensure_open()
        self._problems.append(problem)

    def reject_reference(self, kind: str, reference: object) -> None:
        """Record an unresolved catalog reference."""
        self.reject(reference_problem(kind, reference))

    # -------------------------------------------------------------------------
    # Completion
    # -------------------------------------------------------------------------

    def commit(self) -> None:
        """
        Apply every staged slice to the ledger.

        Raises:
            ReferenceNotFoundError: If any line was rejected for a missing
                reference (carries every problem).
            StockInsufficiencyError: If any consume fell short.
        """
        self._ensure_open()
        if self._problems:
            self._state = "rolled back"
            logger.warning("ledger_transaction_rejected", extra={
                "problem_count": len(self._problems),
                "codes": sorted({p.code for p in self._problems}),
            })
            if any(not p.is_shortage for p in self._problems):
                raise ReferenceNotFoundError(problems=self._problems)
            raise StockInsufficiencyError(self._problems)

        self._ledger._apply(self._staged)
        self._state = "committed"
        logger.debug("ledger_transaction_committed", extra={
            "slice_count": len(self._staged),
        })

    def rollback(self) -> None:
        """Discard every staged change."""
        if self._state == "open":
            self._state = "rolled back"
            self._staged.clear()
            logger.debug("ledger_transaction_rolled_back", extra={
                "problem_count": len(self._problems),
            })

    def __enter__(self) -> LedgerTransaction:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc_type is not None:
            self.rollback()
            return
        if self.is_open:
            self.commit()
