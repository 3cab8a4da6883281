"""Tests for store closures, sales orders and invoices."""

from datetime import date
from decimal import Decimal

import pytest

from stock_config.schema import LedgerConfig
from stock_kernel.exceptions import (
    InvalidStatusTransitionError,
    ReferenceNotFoundError,
    StockInsufficiencyError,
)
from stock_modules import build_services
from stock_modules.models import SaleLine, SalesOrderLine
from stock_modules.workflows import (
    ClosureStatus,
    InvoiceStatus,
    SalesOrderStatus,
)
from stock_services.ledger_service import StockLedger

HUB = 1
STORE = 2
THIOF = 1
TUNA = 2
THIOF_KG = 1
TUNA_STEAK = 2


class TestSaleClosure:
    def test_submit_leaves_closure_closed(self, services, stocked_ledger):
        closure = services.closures.submit(STORE, [SaleLine(THIOF_KG, Decimal("5"), Decimal("7500"))])
        assert closure.status == ClosureStatus.CLOSED
        assert services.closures.pending() == [closure]
        assert stocked_ledger.on_hand(THIOF, STORE) == Decimal("20")

    def test_validate_computes_cogs_and_margin(self, services, stocked_ledger):
        closure = services.closures.submit(STORE, [SaleLine(THIOF_KG, Decimal("5"), Decimal("7500"))])

        validated = services.closures.validate(closure.id)

        assert validated.status == ClosureStatus.VALIDATED
        assert validated.total_revenue == Decimal("37500")
        assert validated.total_cogs == Decimal("28000")
        assert validated.gross_margin == Decimal("9500")
        assert validated.lines[0].cogs == Decimal("28000")
        assert stocked_ledger.on_hand(THIOF, STORE) == Decimal("15")
        assert services.closures.pending() == []

    def test_cogs_rounded_to_currency_unit(self, services, ledger):
        ledger.receive(TUNA, STORE, Decimal("1"), Decimal("4002"), "T9", date(2025, 8, 6), "BR-T9")
        closure = services.closures.submit(STORE, [SaleLine(TUNA_STEAK, Decimal("1"), Decimal("1800"))])

        validated = services.closures.validate(closure.id)

        assert validated.lines[0].cogs == Decimal("1001")
        assert validated.total_cogs == Decimal("1001")
        assert ledger.on_hand(TUNA, STORE) == Decimal("0.75")

    def test_cogs_kept_to_cents_when_currency_has_them(self, catalog, store, clock, ids):
        config = LedgerConfig(currency="EUR", currency_decimal_places=2)
        ledger = StockLedger(config)
        services = build_services(ledger, catalog, store, clock, ids, config)
        ledger.receive(TUNA, STORE, Decimal("1"), Decimal("12.345"), "T9", date(2025, 8, 6), "BR-T9")
        closure = services.closures.submit(STORE, [SaleLine(TUNA_STEAK, Decimal("2"), Decimal("5"))])

        validated = services.closures.validate(closure.id)

        assert validated.total_cogs == Decimal("6.17")

    def test_validate_twice_refused(self, services, stocked_ledger):
        closure = services.closures.submit(STORE, [SaleLine(THIOF_KG, Decimal("5"), Decimal("7500"))])
        services.closures.validate(closure.id)
        with pytest.raises(InvalidStatusTransitionError):
            services.closures.validate(closure.id)
        assert stocked_ledger.on_hand(THIOF, STORE) == Decimal("15")

    def test_draft_cannot_be_validated(self, services, stocked_ledger):
        closure = services.closures.draft(STORE, [SaleLine(THIOF_KG, Decimal("1"), Decimal("7500"))])
        with pytest.raises(InvalidStatusTransitionError):
            services.closures.validate(closure.id)

    def test_short_line_aborts_whole_closure(self, services, stocked_ledger):
        closure = services.closures.submit(STORE, [
            SaleLine(THIOF_KG, Decimal("5"), Decimal("7500")),
            SaleLine(TUNA_STEAK, Decimal("4"), Decimal("1800")),
        ])
        with pytest.raises(StockInsufficiencyError) as exc_info:
            services.closures.validate(closure.id)

        assert [p.product_id for p in exc_info.value.problems] == [TUNA]
        assert stocked_ledger.on_hand(THIOF, STORE) == Decimal("20")
        assert services.closures.get(closure.id).status == ClosureStatus.CLOSED

    def test_unknown_sales_unit_reported(self, services, stocked_ledger):
        closure = services.closures.submit(STORE, [
            SaleLine(THIOF_KG, Decimal("5"), Decimal("7500")),
            SaleLine(99, Decimal("1"), Decimal("100")),
        ])
        with pytest.raises(ReferenceNotFoundError) as exc_info:
            services.closures.validate(closure.id)
        assert exc_info.value.messages == ["sales unit not found: 99"]
        assert stocked_ledger.on_hand(THIOF, STORE) == Decimal("20")

    def test_non_positive_quantity_rejected(self, services):
        with pytest.raises(ValueError):
            services.closures.submit(STORE, [SaleLine(THIOF_KG, Decimal("0"), Decimal("7500"))])


class TestSalesOrder:
    def _order(self, services):
        return services.sales_orders.create("Hotel Terrou-Bi", [
            SalesOrderLine(TUNA_STEAK, Decimal("8"), Decimal("1800")),
        ])

    def test_delivery_consumes_at_hub(self, services, stocked_ledger):
        order = self._order(services)
        assert order.status == SalesOrderStatus.CONFIRMED

        services.sales_orders.prepare(order.id)
        delivered = services.sales_orders.deliver(order.id)

        assert delivered.status == SalesOrderStatus.DELIVERED
        assert delivered.delivery_date == date(2025, 8, 1)
        assert delivered.total_cogs == Decimal("8000")
        assert delivered.gross_margin == Decimal("6400")
        assert stocked_ledger.on_hand(TUNA, HUB) == Decimal("38")

    def test_unknown_sales_unit_rejected_on_create(self, services):
        with pytest.raises(ReferenceNotFoundError):
            services.sales_orders.create("Hotel", [SalesOrderLine(99, Decimal("1"), Decimal("1"))])

    def test_short_delivery_keeps_status(self, services, stocked_ledger):
        order = services.sales_orders.create("Hotel", [
            SalesOrderLine(TUNA_STEAK, Decimal("200"), Decimal("1800")),
        ])
        with pytest.raises(StockInsufficiencyError):
            services.sales_orders.deliver(order.id)
        assert services.sales_orders.get(order.id).status == SalesOrderStatus.CONFIRMED
        assert stocked_ledger.on_hand(TUNA, HUB) == Decimal("40")

    def test_invoice_before_delivery_refused(self, services):
        order = self._order(services)
        with pytest.raises(InvalidStatusTransitionError):
            services.sales_orders.invoice(order.id)

    def test_invoice_generated(self, services, stocked_ledger):
        order = self._order(services)
        services.sales_orders.deliver(order.id)

        invoiced = services.sales_orders.invoice(order.id)

        assert invoiced.status == SalesOrderStatus.INVOICED
        assert invoiced.invoice_id == "FAC-2025-0001"
        invoice = services.sales_orders.get_invoice(invoiced.invoice_id)
        assert invoice.status == InvoiceStatus.SENT
        assert invoice.due_date == date(2025, 8, 31)
        assert invoice.total_amount == Decimal("14400")
        assert invoice.lines[0].description == "Tuna steak 250g"

    def test_invoice_numbers_follow_each_other(self, services, stocked_ledger):
        first = self._order(services)
        second = self._order(services)
        for order in (first, second):
            services.sales_orders.deliver(order.id)
        services.sales_orders.invoice(first.id)
        assert services.sales_orders.invoice(second.id).invoice_id == "FAC-2025-0002"

    def test_mark_paid(self, services, stocked_ledger):
        order = self._order(services)
        services.sales_orders.deliver(order.id)
        invoice_id = services.sales_orders.invoice(order.id).invoice_id

        paid = services.sales_orders.mark_invoice_paid(invoice_id)

        assert paid.status == InvoiceStatus.PAID
        assert paid.paid_date == date(2025, 8, 1)
        with pytest.raises(InvalidStatusTransitionError):
            services.sales_orders.mark_invoice_paid(invoice_id)

    def test_overdue_invoices(self, services, stocked_ledger, clock):
        order = self._order(services)
        services.sales_orders.deliver(order.id)
        invoice_id = services.sales_orders.invoice(order.id).invoice_id

        assert services.sales_orders.mark_overdue_invoices() == []
        clock.advance(days=31)
        overdue = services.sales_orders.mark_overdue_invoices()

        assert [inv.id for inv in overdue] == [invoice_id]
        assert overdue[0].status == InvoiceStatus.OVERDUE
        assert services.sales_orders.mark_invoice_paid(invoice_id).status == InvoiceStatus.PAID

    def test_invoiced_order_is_terminal(self, services, stocked_ledger):
        order = self._order(services)
        services.sales_orders.deliver(order.id)
        services.sales_orders.invoice(order.id)
        with pytest.raises(InvalidStatusTransitionError):
            services.sales_orders.invoice(order.id)
