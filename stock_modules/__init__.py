"""
Stock Modules.

Business documents over the stock ledger.  Each module contains the
document service for one family of documents; models and workflows are
shared:

- purchasing:  purchase orders, arrivals
- transfers:   inter-location transfers
- losses:      manual and system losses
- inventory:   physical counts
- sales:       store day closures, sales orders, invoices
- production:  recipes, production orders

``build_services`` composes every service over one set of collaborators.
"""

from __future__ import annotations

from dataclasses import dataclass

from stock_config.schema import LedgerConfig
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.ids import IdGenerator, SequentialIdGenerator
from stock_modules.catalog import Catalog
from stock_modules.inventory import InventoryService
from stock_modules.losses import LossService
from stock_modules.production import ProductionService
from stock_modules.purchasing import ArrivalService, PurchaseOrderService
from stock_modules.sales import SaleClosureService, SalesOrderService
from stock_modules.store import DocumentStore
from stock_modules.transfers import TransferService
from stock_services.ledger_service import StockLedger


@dataclass(frozen=True)
class StockServices:
    """Every document service, wired to the same ledger and store."""
    ledger: StockLedger
    catalog: Catalog
    store: DocumentStore
    purchase_orders: PurchaseOrderService
    arrivals: ArrivalService
    transfers: TransferService
    losses: LossService
    inventories: InventoryService
    closures: SaleClosureService
    sales_orders: SalesOrderService
    production: ProductionService


def build_services(
    ledger: StockLedger,
    catalog: Catalog,
    store: DocumentStore | None = None,
    clock: Clock | None = None,
    ids: IdGenerator | None = None,
    config: LedgerConfig | None = None,
) -> StockServices:
    store = store or DocumentStore()
    clock = clock or SystemClock()
    ids = ids or SequentialIdGenerator()
    config = config or ledger.config
    deps = (ledger, catalog, store, clock, ids, config)

    losses = LossService(*deps)
    return StockServices(
        ledger=ledger,
        catalog=catalog,
        store=store,
        purchase_orders=PurchaseOrderService(*deps),
        arrivals=ArrivalService(*deps),
        transfers=TransferService(*deps, losses=losses),
        losses=losses,
        inventories=InventoryService(*deps, losses=losses),
        closures=SaleClosureService(*deps),
        sales_orders=SalesOrderService(*deps),
        production=ProductionService(*deps),
    )


__all__ = [
    "StockServices",
    "build_services",
]
