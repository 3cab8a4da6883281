#!/usr/bin/env python3
"""
Ledger scenario demo.

Wires a StockLedger with the YAML config, a small fish-retail catalog and
every document service, then runs one business day:

  arrival at the hub -> transfer to a store (with transit gap) ->
  store closure -> sales order delivery + invoice -> production ->
  inventory count -> persistence to SQLite

Usage:
    python3 scripts/demo_ledger.py
    python3 scripts/demo_ledger.py --db-url sqlite:///ledger.db
    python3 scripts/demo_ledger.py --log-level DEBUG   # JSON logs on stderr
"""

import argparse
import logging
import sys
from datetime import UTC, date, datetime
from decimal import Decimal
from pathlib import Path

# ---------------------------------------------------------------------------
# Project root on sys.path
# ---------------------------------------------------------------------------
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

DB_URL = "sqlite:///:memory:"
HUB = 1
STORE = 2


def _build_catalog():
    from stock_modules.catalog import (
        Catalog,
        Location,
        LocationType,
        Product,
        ProductType,
        SalesUnit,
    )

    return Catalog(
        products=[
            Product(1, "Thiof", "kg", Decimal("5000")),
            Product(2, "Yellowfin tuna", "kg", Decimal("4200")),
            Product(3, "Fish brochette", "piece", Decimal("0"), ProductType.FINISHED_GOOD),
        ],
        sales_units=[
            SalesUnit(1, "Thiof whole 1kg", 1, Decimal("7500"), Decimal("1")),
            SalesUnit(2, "Tuna steak 250g", 2, Decimal("1800"), Decimal("0.25")),
        ],
        locations=[
            Location(HUB, "Hub Dakar", LocationType.HUB),
            Location(STORE, "Store Almadies", LocationType.STORE),
        ],
    )


def _print_stock(ledger, catalog):
    for product in catalog.products():
        for location in catalog.locations():
            qty = ledger.on_hand(product.id, location.id)
            if qty > 0:
                print(
                    f"         {product.name:<16} @ {location.name:<15} "
                    f"{qty:>10} {product.stock_unit:<5} "
                    f"value {ledger.stock_value(product.id, location.id):>12.0f}"
                )


def main() -> int:
    parser = argparse.ArgumentParser(description="Batch ledger scenario demo")
    parser.add_argument("--db-url", default=DB_URL, help="Database URL for the snapshot")
    parser.add_argument("--config", default=None, help="Ledger YAML config file")
    parser.add_argument("--log-level", default=None,
                        help="Emit structured logs at this level (default: silent)")
    args = parser.parse_args()

    from stock_config import get_active_config
    from stock_kernel.db.engine import create_tables, init_engine_from_url, session_scope
    from stock_kernel.domain.clock import DeterministicClock
    from stock_kernel.exceptions import StockInsufficiencyError
    from stock_kernel.logging_config import configure_logging
    from stock_modules import build_services
    from stock_modules.models import ArrivalLine, LossType, RecipeLine, SaleLine, SalesOrderLine
    from stock_services.batch_repository import BatchRepository
    from stock_services.ledger_service import StockLedger

    if args.log_level:
        configure_logging(level=getattr(logging, args.log_level.upper()))
    else:
        logging.disable(logging.CRITICAL)

    print()
    print("  [1/8] Loading config and wiring services...")
    config = get_active_config(args.config)
    clock = DeterministicClock(datetime(2025, 8, 1, 8, 0, 0, tzinfo=UTC))
    catalog = _build_catalog()
    svc = build_services(StockLedger(config), catalog, clock=clock, config=config)
    print(f"         Currency: {config.currency}, hub: {config.hub_location_id}")

    print("  [2/8] Arrival at the hub...")
    arrival = svc.arrivals.record_arrival("Pirogue Soumbedioune", HUB, [
        ArrivalLine(1, Decimal("100"), Decimal("5500"), "A", date(2025, 8, 8)),
        ArrivalLine(1, Decimal("30"), Decimal("5800"), "B", date(2025, 8, 10)),
        ArrivalLine(2, Decimal("40"), Decimal("4000"), "T1", date(2025, 8, 6)),
    ])
    print(f"         {arrival.id}: value {arrival.total_value}")

    print("  [3/8] Transfer hub -> store (1 kg lost in transit)...")
    transfer = svc.transfers.create_transfer(HUB, STORE, [(1, 30), (2, 10)])
    received = [line.sent_quantity for line in transfer.lines]
    received[0] -= 1
    transfer = svc.transfers.receive_transfer(transfer.id, received)
    print(f"         {transfer.id}: {transfer.status.value}")

    print("  [4/8] Store day closure...")
    closure = svc.closures.submit(STORE, [
        SaleLine(1, Decimal("12"), Decimal("7500")),
        SaleLine(2, Decimal("20"), Decimal("1800")),
    ])
    closure = svc.closures.validate(closure.id)
    print(f"         {closure.id}: revenue {closure.total_revenue}, "
          f"COGS {closure.total_cogs}, margin {closure.gross_margin}")

    print("  [5/8] Sales order delivered from the hub and invoiced...")
    order = svc.sales_orders.create("Hotel Terrou-Bi", [SalesOrderLine(1, Decimal("40"), Decimal("7000"))])
    svc.sales_orders.deliver(order.id)
    order = svc.sales_orders.invoice(order.id)
    print(f"         {order.id}: COGS {order.total_cogs}, invoice {order.invoice_id}")

    print("  [6/8] Production of brochettes...")
    recipe = svc.production.add_recipe("Brochette", 3, [RecipeLine(2, Decimal("0.2"))])
    prod = svc.production.create_order(recipe.id, 50)
    svc.production.start(prod.id)
    prod = svc.production.complete(prod.id, 45)
    print(f"         {prod.id}: cost {prod.total_cost}, unit cost {prod.unit_cost:.2f}")

    try:
        svc.losses.declare_loss(LossType.BREAKAGE, 2, STORE, 100)
    except StockInsufficiencyError as exc:
        print(f"         Loss refused: {exc}")

    print("  [7/8] Inventory count at the store...")
    inventory = svc.inventories.start(STORE)
    counts = {line.product_id: line.theoretical_quantity for line in inventory.lines}
    counts[1] -= Decimal("0.5")
    svc.inventories.submit(inventory.id, counts)
    inventory = svc.inventories.validate(inventory.id)
    print(f"         {inventory.id}: loss {inventory.loss_value}, gain {inventory.gain_value}")
    _print_stock(svc.ledger, catalog)

    print("  [8/8] Saving the ledger...")
    init_engine_from_url(args.db_url)
    create_tables()
    with session_scope() as session:
        count = BatchRepository(session).save_ledger(svc.ledger)
    print(f"         {count} batches written to {args.db_url}")
    print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
