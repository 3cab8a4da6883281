"""
Purchasing: purchase orders and goods arrivals.

Responsibility
--------------
Record supplier orders and the arrivals that fulfil them.  An arrival is
the only way purchased stock enters the ledger: each line becomes one
batch at the arrival's location with its lot, unit cost and expiry.

Invariants
----------
- An arrival is all-or-nothing: an unknown product or a duplicate lot on
  any line leaves the ledger untouched and stores no document.
- A purchase order linked to an arrival moves to COMPLETED only once the
  arrival has been committed.

Failure Modes
-------------
- ReferenceNotFoundError: unknown location or product.
- DocumentNotFoundError: unknown purchase order.
- InvalidStatusTransitionError: purchase order already completed.
- DuplicateLotError: lot already held at the location.
- ValueError: empty line list, quantity <= 0 or negative cost.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date

from stock_kernel.domain.values import to_decimal
from stock_kernel.logging_config import get_logger
from stock_modules._document_service import DocumentService
from stock_modules.models import Arrival, ArrivalLine, PurchaseOrder, PurchaseOrderLine
from stock_modules.store import DocumentKind
from stock_modules.workflows import PURCHASE_ORDER_WORKFLOW, PurchaseOrderStatus

logger = get_logger("modules.purchasing")


class PurchaseOrderService(DocumentService):
    """Create and send supplier purchase orders.  No stock effect."""

    def create(
        self,
        supplier: str,
        lines: Sequence[PurchaseOrderLine],
        expected_date: date | None = None,
    ) -> PurchaseOrder:
        if not lines:
            raise ValueError("A purchase order needs at least one line")
        normalized = []
        for line in lines:
            self._catalog.product(line.product_id)
            quantity = to_decimal(line.quantity)
            if quantity <= 0:
                raise ValueError(f"Ordered quantity must be positive (got {quantity})")
            normalized.append(PurchaseOrderLine(line.product_id, quantity, to_decimal(line.unit_price)))

        order = PurchaseOrder(
            id=self._ids.next_id("BC"),
            supplier=supplier,
            order_date=self._clock.today(),
            lines=tuple(normalized),
            expected_date=expected_date,
        )
        self._store.add(DocumentKind.PURCHASE_ORDER, order)
        logger.info("purchase_order_created", extra={
            "purchase_order_id": order.id,
            "supplier": supplier,
            "line_count": len(order.lines),
            "total_amount": str(order.total_amount),
        })
        return order

    def send(self, order_id: str) -> PurchaseOrder:
        order = self._store.get(DocumentKind.PURCHASE_ORDER, order_id)
        updated = self._advance(
            PURCHASE_ORDER_WORKFLOW, DocumentKind.PURCHASE_ORDER, order, PurchaseOrderStatus.SENT,
        )
        logger.info("purchase_order_sent", extra={"purchase_order_id": order_id})
        return updated

    def get(self, order_id: str) -> PurchaseOrder:
        return self._store.get(DocumentKind.PURCHASE_ORDER, order_id)

    def open_orders(self) -> list[PurchaseOrder]:
        return self._store.list(
            DocumentKind.PURCHASE_ORDER,
            lambda o: o.status != PurchaseOrderStatus.COMPLETED,
        )


class ArrivalService(DocumentService):
    """Receive supplier deliveries into the ledger."""

    def record_arrival(
        self,
        supplier: str,
        location_id: int,
        lines: Sequence[ArrivalLine],
        purchase_order_id: str | None = None,
    ) -> Arrival:
        """
        Receive every line as a new batch at ``location_id``.

        Postconditions:
            One batch per line, ``source_ref`` = arrival id.  The linked
            purchase order, if any, is COMPLETED.
        """
        if not lines:
            raise ValueError("An arrival needs at least one line")
        self._catalog.location(location_id)

        order = None
        if purchase_order_id is not None:
            order = self._store.get(DocumentKind.PURCHASE_ORDER, purchase_order_id)
            PURCHASE_ORDER_WORKFLOW.require(order.id, order.status, PurchaseOrderStatus.COMPLETED)

        arrival_id = self._ids.next_id("BR")
        received: list[ArrivalLine] = []
        with self._bind(arrival_id, "record_arrival"), self._ledger.transaction() as tx:
            for line in lines:
                if self._product_in(tx, line.product_id) is None:
                    continue
                batch = tx.receive(
                    line.product_id,
                    location_id,
                    line.quantity,
                    line.unit_cost,
                    line.lot,
                    line.expiry_date,
                    arrival_id,
                )
                received.append(ArrivalLine(
                    product_id=line.product_id,
                    quantity=batch.quantity,
                    unit_cost=batch.unit_cost,
                    lot=line.lot,
                    expiry_date=line.expiry_date,
                ))

        arrival = Arrival(
            id=arrival_id,
            supplier=supplier,
            location_id=location_id,
            arrival_date=self._clock.today(),
            lines=tuple(received),
            purchase_order_id=purchase_order_id,
        )
        self._store.add(DocumentKind.ARRIVAL, arrival)

        if order is not None:
            self._advance(
                PURCHASE_ORDER_WORKFLOW,
                DocumentKind.PURCHASE_ORDER,
                order,
                PurchaseOrderStatus.COMPLETED,
                arrival_id=arrival_id,
            )

        logger.info("arrival_recorded", extra={
            "arrival_id": arrival_id,
            "location_id": location_id,
            "line_count": len(arrival.lines),
            "total_value": str(arrival.total_value),
            "purchase_order_id": purchase_order_id,
        })
        return arrival

    def get(self, arrival_id: str) -> Arrival:
        return self._store.get(DocumentKind.ARRIVAL, arrival_id)
