"""
Sales: store day closures, B2B sales orders and their invoices.

Responsibility
--------------
Turn recorded sales into stock consumption and cost of goods sold.

Architecture
------------
Each sold line names a sales unit; the base product quantity consumed is
``sold quantity * unit factor``.  Closures consume at their store, sales
orders at the hub.  Consumption is all-or-nothing per document: every
line's shortfall and every unknown reference is reported in one error.

Failure Modes
-------------
- StockInsufficiencyError / ReferenceNotFoundError on validation or
  delivery; the document keeps its status and the ledger is untouched.
- InvalidStatusTransitionError, e.g. validating a closure twice.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace
from datetime import date, timedelta
from decimal import Decimal

from stock_kernel.domain.values import round_money, to_decimal
from stock_kernel.exceptions import DocumentStateError
from stock_kernel.logging_config import get_logger
from stock_modules._document_service import DocumentService
from stock_modules.models import (
    Invoice,
    InvoiceLine,
    SaleClosure,
    SaleLine,
    SalesOrder,
    SalesOrderLine,
)
from stock_modules.store import DocumentKind
from stock_modules.workflows import (
    CLOSURE_WORKFLOW,
    INVOICE_WORKFLOW,
    SALES_ORDER_WORKFLOW,
    ClosureStatus,
    InvoiceStatus,
    SalesOrderStatus,
)
from stock_services.ledger_service import LedgerTransaction

logger = get_logger("modules.sales")


def _normalize_lines(lines, line_type):
    if not lines:
        raise ValueError("At least one sold line is required")
    normalized = []
    for line in lines:
        quantity = to_decimal(line.quantity)
        if quantity <= 0:
            raise ValueError(f"Sold quantity must be positive (got {quantity})")
        normalized.append(line_type(line.sales_unit_id, quantity, to_decimal(line.unit_price)))
    return tuple(normalized)


class _SalesConsumer(DocumentService):
    """Consume the base products behind sales-unit lines."""

    def _consume_lines(
        self,
        tx: LedgerTransaction,
        location_id: int,
        lines: Sequence[SaleLine | SalesOrderLine],
    ) -> list[Decimal | None]:
        """Line COGS rounded to the currency minor unit; None for a rejected line."""
        places = self._config.currency_decimal_places
        costs: list[Decimal | None] = []
        for line in lines:
            if self._sales_unit_in(tx, line.sales_unit_id) is None:
                costs.append(None)
                continue
            product, required = self._catalog.resolve_sale(line.sales_unit_id, line.quantity)
            result = tx.consume(
                product.id,
                location_id,
                required,
                product.stock_unit,
                product.name,
            )
            costs.append(round_money(result.total_cost, places))
        return costs


class SaleClosureService(_SalesConsumer):
    """End-of-day closures of the stores."""

    def draft(
        self,
        location_id: int,
        lines: Sequence[SaleLine],
        closure_date: date | None = None,
    ) -> SaleClosure:
        self._catalog.location(location_id)
        closure = SaleClosure(
            id=self._ids.next_id("CL"),
            location_id=location_id,
            closure_date=closure_date or self._clock.today(),
            lines=_normalize_lines(lines, SaleLine),
        )
        self._store.add(DocumentKind.SALE_CLOSURE, closure)
        logger.info("sale_closure_drafted", extra={
            "closure_id": closure.id,
            "location_id": location_id,
            "total_revenue": str(closure.total_revenue),
        })
        return closure

    def close(self, closure_id: str) -> SaleClosure:
        closure = self._store.get(DocumentKind.SALE_CLOSURE, closure_id)
        return self._advance(
            CLOSURE_WORKFLOW, DocumentKind.SALE_CLOSURE, closure, ClosureStatus.CLOSED,
        )

    def submit(
        self,
        location_id: int,
        lines: Sequence[SaleLine],
        closure_date: date | None = None,
    ) -> SaleClosure:
        """Record a store's day and close it for validation."""
        closure = self.draft(location_id, lines, closure_date)
        closed = self.close(closure.id)
        logger.info("sale_closure_submitted", extra={
            "closure_id": closure.id,
            "location_id": location_id,
        })
        return closed

    def validate(self, closure_id: str) -> SaleClosure:
        """
        Consume the day's sales FEFO at the store and compute COGS.

        Raises:
            InvalidStatusTransitionError: Closure not CLOSED (e.g. already
                validated).
            StockInsufficiencyError: Some line cannot be covered.
        """
        closure = self._store.get(DocumentKind.SALE_CLOSURE, closure_id)
        CLOSURE_WORKFLOW.require(closure.id, closure.status, ClosureStatus.VALIDATED)

        with self._bind(closure.id, "validate_closure"), self._ledger.transaction() as tx:
            costs = self._consume_lines(tx, closure.location_id, closure.lines)

        lines = tuple(replace(line, cogs=cost) for line, cost in zip(closure.lines, costs))
        total_cogs = sum((line.cogs for line in lines), Decimal("0"))
        updated = self._advance(
            CLOSURE_WORKFLOW,
            DocumentKind.SALE_CLOSURE,
            closure,
            ClosureStatus.VALIDATED,
            lines=lines,
            total_cogs=total_cogs,
            validated_date=self._clock.today(),
        )
        logger.info("sale_closure_validated", extra={
            "closure_id": closure.id,
            "location_id": closure.location_id,
            "total_revenue": str(updated.total_revenue),
            "total_cogs": str(total_cogs),
            "gross_margin": str(updated.gross_margin),
        })
        return updated

    def get(self, closure_id: str) -> SaleClosure:
        return self._store.get(DocumentKind.SALE_CLOSURE, closure_id)

    def pending(self) -> list[SaleClosure]:
        """Closures waiting for validation."""
        return self._store.list(
            DocumentKind.SALE_CLOSURE, lambda c: c.status == ClosureStatus.CLOSED,
        )


class SalesOrderService(_SalesConsumer):
    """
    B2B orders delivered from the hub.

    Lifecycle: CONFIRMED -> PREPARING -> DELIVERED -> INVOICED.  Delivery
    consumes stock; invoicing issues an Invoice due after the configured
    number of days.
    """

    def create(self, customer: str, lines: Sequence[SalesOrderLine]) -> SalesOrder:
        normalized = _normalize_lines(lines, SalesOrderLine)
        for line in normalized:
            self._catalog.sales_unit(line.sales_unit_id)
        order = SalesOrder(
            id=self._ids.next_id("CV"),
            customer=customer,
            order_date=self._clock.today(),
            lines=normalized,
        )
        self._store.add(DocumentKind.SALES_ORDER, order)
        logger.info("sales_order_created", extra={
            "sales_order_id": order.id,
            "customer": customer,
            "total_amount": str(order.total_amount),
        })
        return order

    def advance(self, order_id: str, status: SalesOrderStatus) -> SalesOrder:
        """Move an order to ``status``, running delivery or invoicing as needed."""
        order = self._store.get(DocumentKind.SALES_ORDER, order_id)
        transition = SALES_ORDER_WORKFLOW.require(order.id, order.status, status)
        if status == SalesOrderStatus.DELIVERED:
            return self._deliver(order)
        if status == SalesOrderStatus.INVOICED:
            return self._invoice(order)
        updated = self._advance(SALES_ORDER_WORKFLOW, DocumentKind.SALES_ORDER, order, status)
        logger.info("sales_order_advanced", extra={
            "sales_order_id": order.id,
            "action": transition.action,
            "status": status.value,
        })
        return updated

    def prepare(self, order_id: str) -> SalesOrder:
        return self.advance(order_id, SalesOrderStatus.PREPARING)

    def deliver(self, order_id: str) -> SalesOrder:
        return self.advance(order_id, SalesOrderStatus.DELIVERED)

    def invoice(self, order_id: str) -> SalesOrder:
        return self.advance(order_id, SalesOrderStatus.INVOICED)

    def mark_invoice_paid(self, invoice_id: str) -> Invoice:
        invoice = self._store.get(DocumentKind.INVOICE, invoice_id)
        updated = self._advance(
            INVOICE_WORKFLOW, DocumentKind.INVOICE, invoice, InvoiceStatus.PAID,
            paid_date=self._clock.today(),
        )
        logger.info("invoice_paid", extra={
            "invoice_id": invoice_id,
            "total_amount": str(invoice.total_amount),
        })
        return updated

    def mark_overdue_invoices(self) -> list[Invoice]:
        """Flag every SENT invoice whose due date has passed."""
        today = self._clock.today()
        overdue = self._store.list(
            DocumentKind.INVOICE,
            lambda inv: inv.status == InvoiceStatus.SENT and inv.due_date < today,
        )
        return [
            self._advance(INVOICE_WORKFLOW, DocumentKind.INVOICE, inv, InvoiceStatus.OVERDUE)
            for inv in overdue
        ]

    def get(self, order_id: str) -> SalesOrder:
        return self._store.get(DocumentKind.SALES_ORDER, order_id)

    def get_invoice(self, invoice_id: str) -> Invoice:
        return self._store.get(DocumentKind.INVOICE, invoice_id)

    # -------------------------------------------------------------------------

    def _deliver(self, order: SalesOrder) -> SalesOrder:
        hub_id = self._config.hub_location_id
        with self._bind(order.id, "deliver_sales_order"), self._ledger.transaction() as tx:
            costs = self._consume_lines(tx, hub_id, order.lines)

        lines = tuple(replace(line, cogs=cost) for line, cost in zip(order.lines, costs))
        total_cogs = sum((line.cogs for line in lines), Decimal("0"))
        updated = self._advance(
            SALES_ORDER_WORKFLOW,
            DocumentKind.SALES_ORDER,
            order,
            SalesOrderStatus.DELIVERED,
            lines=lines,
            total_cogs=total_cogs,
            delivery_date=self._clock.today(),
        )
        logger.info("sales_order_delivered", extra={
            "sales_order_id": order.id,
            "location_id": hub_id,
            "total_cogs": str(total_cogs),
            "gross_margin": str(updated.gross_margin),
        })
        return updated

    def _invoice(self, order: SalesOrder) -> SalesOrder:
        if order.invoice_id is not None:
            raise DocumentStateError("sales order", order.id, f"already invoiced as {order.invoice_id}")
        issue_date = self._clock.today()
        invoice = Invoice(
            id=self._next_invoice_id(issue_date.year),
            sales_order_id=order.id,
            customer=order.customer,
            issue_date=issue_date,
            due_date=issue_date + timedelta(days=self._config.invoice_due_days),
            lines=tuple(
                InvoiceLine(
                    self._catalog.sales_unit(line.sales_unit_id).name,
                    line.quantity,
                    line.unit_price,
                )
                for line in order.lines
            ),
        )
        self._store.add(DocumentKind.INVOICE, invoice)
        updated = self._advance(
            SALES_ORDER_WORKFLOW,
            DocumentKind.SALES_ORDER,
            order,
            SalesOrderStatus.INVOICED,
            invoice_id=invoice.id,
        )
        logger.info("invoice_generated", extra={
            "invoice_id": invoice.id,
            "sales_order_id": order.id,
            "total_amount": str(invoice.total_amount),
            "due_date": invoice.due_date.isoformat(),
        })
        return updated

    def _next_invoice_id(self, year: int) -> str:
        prefix = f"FAC-{year}-"
        issued = self._store.list(DocumentKind.INVOICE, lambda inv: inv.id.startswith(prefix))
        return f"{prefix}{len(issued) + 1:04d}"
