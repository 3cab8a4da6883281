"""
Inventory counts.

Responsibility
--------------
Reconcile the physical count of a store with its theoretical stock.

Lifecycle
---------
    start                 -> IN_PROGRESS       lines for every product on hand
    submit(counts)        -> AWAITING_VALIDATION
    validate              -> VALIDATED         stock adjusted
    correct_and_validate  -> VALIDATED         counts corrected, stock adjusted

Invariants
----------
- At most one open (not VALIDATED) inventory per location.
- Validation is all-or-nothing over every line: a negative gap larger
  than the stock still on hand aborts the whole validation.
- A negative gap is an INVENTORY_GAP loss valued FEFO; a positive gap is
  one batch ``INV-GAIN-{inventory_id}`` expiring at the configured far
  date, costed at the location's weighted average (product base price
  when the location is empty).
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal

from stock_config.schema import LedgerConfig
from stock_kernel.domain.clock import Clock
from stock_kernel.domain.ids import IdGenerator
from stock_kernel.domain.values import Numeric, round_money, to_decimal
from stock_kernel.exceptions import DocumentStateError, InvalidStatusTransitionError
from stock_kernel.logging_config import get_logger
from stock_modules._document_service import DocumentService
from stock_modules.catalog import Catalog
from stock_modules.losses import LossService
from stock_modules.models import Inventory, InventoryLine, LossType
from stock_modules.store import DocumentKind, DocumentStore
from stock_modules.workflows import INVENTORY_WORKFLOW, InventoryStatus
from stock_services.ledger_service import CountAdjustment, StockLedger

logger = get_logger("modules.inventory")


class InventoryService(DocumentService):
    """Run physical stock counts."""

    def __init__(
        self,
        ledger: StockLedger,
        catalog: Catalog,
        store: DocumentStore,
        clock: Clock | None = None,
        ids: IdGenerator | None = None,
        config: LedgerConfig | None = None,
        losses: LossService | None = None,
    ):
        super().__init__(ledger, catalog, store, clock, ids, config)
        self._losses = losses or LossService(
            self._ledger, self._catalog, self._store, self._clock, self._ids, self._config,
        )

    def start(self, location_id: int) -> Inventory:
        """
        Open a count at ``location_id``.

        Raises:
            DocumentStateError: If the location already has an open count.
        """
        self._catalog.location(location_id)
        open_counts = self.open_inventories(location_id)
        if open_counts:
            raise DocumentStateError(
                "inventory", open_counts[0].id,
                f"location {location_id} already has an open inventory",
            )

        on_hand = {
            product_id: self._ledger.on_hand(product_id, location_id)
            for product_id in self._ledger.product_ids()
        }
        lines = tuple(
            InventoryLine(product_id, quantity)
            for product_id, quantity in on_hand.items()
            if quantity > 0
        )
        inventory = Inventory(
            id=self._ids.next_id("INV"),
            location_id=location_id,
            start_date=self._clock.today(),
            lines=lines,
        )
        self._store.add(DocumentKind.INVENTORY, inventory)
        logger.info("inventory_started", extra={
            "inventory_id": inventory.id,
            "location_id": location_id,
            "line_count": len(lines),
        })
        return inventory

    def submit(self, inventory_id: str, counts: Mapping[int, Numeric]) -> Inventory:
        """
        Record physical quantities and send the count for validation.

        Products counted but not on a line get a line with theoretical
        quantity zero.

        Raises:
            DocumentStateError: If any line is left uncounted.
        """
        inventory = self._store.get(DocumentKind.INVENTORY, inventory_id)
        INVENTORY_WORKFLOW.require(
            inventory.id, inventory.status, InventoryStatus.AWAITING_VALIDATION,
        )
        lines = self._apply_counts(inventory, counts)
        updated = self._advance(
            INVENTORY_WORKFLOW, DocumentKind.INVENTORY, inventory,
            InventoryStatus.AWAITING_VALIDATION, lines=lines,
        )
        logger.info("inventory_submitted", extra={
            "inventory_id": inventory_id,
            "location_id": inventory.location_id,
            "gap_lines": sum(1 for line in lines if line.gap != 0),
        })
        return updated

    def validate(self, inventory_id: str) -> Inventory:
        """Adjust stock to the submitted count."""
        inventory = self._store.get(DocumentKind.INVENTORY, inventory_id)
        if inventory.status != InventoryStatus.AWAITING_VALIDATION:
            # IN_PROGRESS -> VALIDATED is reserved for correct_and_validate
            raise InvalidStatusTransitionError(
                "inventory", inventory.id, inventory.status.value, InventoryStatus.VALIDATED.value,
            )
        return self._validate(inventory, inventory.lines)

    def correct_and_validate(
        self,
        inventory_id: str,
        corrections: Mapping[int, Numeric],
    ) -> Inventory:
        """Overwrite counted quantities, then validate in one step."""
        inventory = self._store.get(DocumentKind.INVENTORY, inventory_id)
        lines = self._apply_counts(inventory, corrections)
        logger.info("inventory_corrected", extra={
            "inventory_id": inventory_id,
            "corrected_products": sorted(corrections),
        })
        return self._validate(inventory, lines)

    def get(self, inventory_id: str) -> Inventory:
        return self._store.get(DocumentKind.INVENTORY, inventory_id)

    def open_inventories(self, location_id: int | None = None) -> list[Inventory]:
        return self._store.list(
            DocumentKind.INVENTORY,
            lambda inv: inv.status != InventoryStatus.VALIDATED
            and (location_id is None or inv.location_id == location_id),
        )

    # -------------------------------------------------------------------------

    def _apply_counts(
        self,
        inventory: Inventory,
        counts: Mapping[int, Numeric],
    ) -> tuple[InventoryLine, ...]:
        physical: dict[int, Decimal] = {}
        for product_id, quantity in counts.items():
            self._catalog.product(product_id)
            quantity = to_decimal(quantity)
            if quantity < 0:
                raise ValueError(f"Counted quantity cannot be negative (got {quantity})")
            physical[product_id] = quantity

        lines = [
            InventoryLine(
                line.product_id,
                line.theoretical_quantity,
                physical.pop(line.product_id, line.physical_quantity),
            )
            for line in inventory.lines
        ]
        lines.extend(
            InventoryLine(product_id, Decimal("0"), quantity)
            for product_id, quantity in physical.items()
        )

        uncounted = [line.product_id for line in lines if line.physical_quantity is None]
        if uncounted:
            raise DocumentStateError(
                "inventory", inventory.id, f"products not counted: {uncounted}"
            )
        return tuple(lines)

    def _validate(
        self,
        inventory: Inventory,
        lines: tuple[InventoryLine, ...],
    ) -> Inventory:
        INVENTORY_WORKFLOW.require(inventory.id, inventory.status, InventoryStatus.VALIDATED)
        location_id = inventory.location_id
        adjustments: list[CountAdjustment] = []

        with self._bind(inventory.id, "validate_inventory"), self._ledger.transaction() as tx:
            for line in lines:
                product = self._product_in(tx, line.product_id)
                if product is None:
                    continue
                adjustments.append(tx.adjust_for_count(
                    line.product_id,
                    location_id,
                    line.theoretical_quantity,
                    line.physical_quantity,
                    product.base_price,
                    f"INV-GAIN-{inventory.id}",
                    inventory.id,
                ))

        places = self._config.currency_decimal_places
        loss_value = Decimal("0")
        gain_value = Decimal("0")
        for adj in adjustments:
            if adj.loss is not None:
                loss_value += adj.loss_value
                self._losses.record_system_loss(
                    LossType.INVENTORY_GAP,
                    adj.product_id,
                    location_id,
                    -adj.gap,
                    adj.loss_value,
                    source_ref=inventory.id,
                    note=f"Count gap {adj.gap}",
                )
            elif adj.gain_batch is not None:
                gain_value += adj.gain_batch.value

        updated = self._advance(
            INVENTORY_WORKFLOW,
            DocumentKind.INVENTORY,
            inventory,
            InventoryStatus.VALIDATED,
            lines=lines,
            validated_date=self._clock.today(),
            loss_value=round_money(loss_value, places),
            gain_value=round_money(gain_value, places),
        )
        logger.info("inventory_validated", extra={
            "inventory_id": inventory.id,
            "location_id": location_id,
            "loss_value": str(updated.loss_value),
            "gain_value": str(updated.gain_value),
        })
        return updated
