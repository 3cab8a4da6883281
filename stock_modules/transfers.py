"""
Transfers between locations.

Dispatch consumes FEFO at the source; every consumed slice becomes a
transfer line carrying its lot, cost and expiry.  Reception creates one
batch per line at the destination with the as-shipped cost and expiry,
under the lot name ``{lot}-{suffix}-{transfer_id}``.  A received quantity
below the sent one is recorded as an IN_TRANSIT loss valued at the line's
unit cost.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace
from decimal import Decimal

from stock_config.schema import LedgerConfig
from stock_kernel.domain.clock import Clock
from stock_kernel.domain.ids import IdGenerator
from stock_kernel.domain.values import Numeric, to_decimal
from stock_kernel.logging_config import get_logger
from stock_modules._document_service import DocumentService
from stock_modules.catalog import Catalog
from stock_modules.losses import LossService
from stock_modules.models import LossType, Transfer, TransferLine
from stock_modules.store import DocumentKind, DocumentStore
from stock_modules.workflows import TRANSFER_WORKFLOW, TransferStatus
from stock_services.ledger_service import StockLedger

logger = get_logger("modules.transfers")


class TransferService(DocumentService):
    """
    Ship stock from one location to another.

    Contract:
        ``losses`` records the transit discrepancies; by default a
        LossService over the same collaborators.
    Guarantees:
        - Dispatch is all-or-nothing over every requested product.
        - Reception is all-or-nothing over every line.
    """

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

    def create_transfer(
        self,
        from_location_id: int,
        to_location_id: int,
        items: Sequence[tuple[int, Numeric]],
    ) -> Transfer:
        """
        Dispatch ``(product_id, quantity)`` items from the source location.

        Items for the same product are merged into one FEFO consumption.

        Raises:
            ValueError: Same source and destination, no items, or a
                non-positive quantity.
            StockInsufficiencyError: The source cannot cover every item.
            ReferenceNotFoundError: Unknown location or product.
        """
        if from_location_id == to_location_id:
            raise ValueError("Transfer source and destination must differ")
        if not items:
            raise ValueError("A transfer needs at least one item")
        self._catalog.location(from_location_id)
        self._catalog.location(to_location_id)

        requested: dict[int, Decimal] = {}
        for product_id, quantity in items:
            quantity = to_decimal(quantity)
            if quantity <= 0:
                raise ValueError(f"Transfer quantity must be positive (got {quantity})")
            requested[product_id] = requested.get(product_id, Decimal("0")) + quantity

        transfer_id = self._ids.next_id("TR")
        lines: list[TransferLine] = []
        with self._bind(transfer_id, "create_transfer"), self._ledger.transaction() as tx:
            for product_id, quantity in requested.items():
                product = self._product_in(tx, product_id)
                if product is None:
                    continue
                result = tx.consume(
                    product_id, from_location_id, quantity, product.stock_unit, product.name,
                )
                lines.extend(
                    TransferLine(
                        product_id=product_id,
                        lot=slice_.lot,
                        sent_quantity=slice_.quantity_taken,
                        unit_cost=slice_.unit_cost,
                        expiry_date=slice_.expiry_date,
                    )
                    for slice_ in result.lines
                )

        transfer = Transfer(
            id=transfer_id,
            from_location_id=from_location_id,
            to_location_id=to_location_id,
            dispatch_date=self._clock.today(),
            lines=tuple(lines),
        )
        self._store.add(DocumentKind.TRANSFER, transfer)
        logger.info("transfer_dispatched", extra={
            "transfer_id": transfer_id,
            "from_location_id": from_location_id,
            "to_location_id": to_location_id,
            "line_count": len(lines),
            "sent_value": str(transfer.sent_value),
        })
        return transfer

    def receive_transfer(
        self,
        transfer_id: str,
        received_quantities: Sequence[Numeric] | None = None,
    ) -> Transfer:
        """
        Receive a transfer at its destination.

        ``received_quantities`` gives the counted quantity per line, in
        line order; None means everything arrived as sent.

        Raises:
            InvalidStatusTransitionError: Transfer already received.
            ValueError: Wrong number of quantities, or a quantity outside
                ``[0, sent]``.
        """
        transfer = self._store.get(DocumentKind.TRANSFER, transfer_id)
        if received_quantities is None:
            received = [line.sent_quantity for line in transfer.lines]
        else:
            if len(received_quantities) != len(transfer.lines):
                raise ValueError(
                    f"Expected {len(transfer.lines)} received quantities, "
                    f"got {len(received_quantities)}"
                )
            received = [to_decimal(q) for q in received_quantities]
        for line, quantity in zip(transfer.lines, received):
            if quantity < 0 or quantity > line.sent_quantity:
                raise ValueError(
                    f"Received quantity {quantity} for lot {line.lot} "
                    f"must be between 0 and {line.sent_quantity}"
                )

        epsilon = self._config.epsilon
        lines = tuple(
            replace(line, received_quantity=quantity)
            for line, quantity in zip(transfer.lines, received)
        )
        has_gap = any(line.discrepancy > epsilon for line in lines)
        target = TransferStatus.COMPLETED_WITH_GAP if has_gap else TransferStatus.COMPLETED
        TRANSFER_WORKFLOW.require(transfer.id, transfer.status, target)

        with self._bind(transfer_id, "receive_transfer"), self._ledger.transaction() as tx:
            for line in lines:
                if line.received_quantity <= epsilon:
                    continue
                tx.receive(
                    line.product_id,
                    transfer.to_location_id,
                    line.received_quantity,
                    line.unit_cost,
                    f"{line.lot}-{self._config.lot_suffix_transfer}-{transfer.id}",
                    line.expiry_date,
                    transfer.id,
                )

        for line in lines:
            if line.discrepancy > epsilon:
                self._losses.record_system_loss(
                    LossType.IN_TRANSIT,
                    line.product_id,
                    transfer.to_location_id,
                    line.discrepancy,
                    line.discrepancy * line.unit_cost,
                    source_ref=transfer.id,
                    note=f"Transfer {transfer.id} gap on lot {line.lot}",
                )

        updated = self._advance(
            TRANSFER_WORKFLOW,
            DocumentKind.TRANSFER,
            transfer,
            target,
            lines=lines,
            received_date=self._clock.today(),
        )
        logger.info("transfer_received", extra={
            "transfer_id": transfer_id,
            "status": target.value,
            "to_location_id": transfer.to_location_id,
            "gap_lines": sum(1 for line in lines if line.discrepancy > epsilon),
        })
        return updated

    def get(self, transfer_id: str) -> Transfer:
        return self._store.get(DocumentKind.TRANSFER, transfer_id)

    def in_transit(self, to_location_id: int | None = None) -> list[Transfer]:
        return self._store.list(
            DocumentKind.TRANSFER,
            lambda t: t.status == TransferStatus.IN_TRANSIT
            and (to_location_id is None or t.to_location_id == to_location_id),
        )
