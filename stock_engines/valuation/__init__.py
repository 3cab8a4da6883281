"""
Valuation - Pure batch domain objects and FEFO costing.

Pure domain types only. The stateful StockLedger lives in
stock_services.ledger_service.
"""

from stock_engines.valuation.batch import (
    Batch,
    ConsumptionLine,
    ConsumptionResult,
)
from stock_engines.valuation.fefo import (
    consume_fefo,
    fefo_order,
    production_unit_cost,
    total_quantity,
    total_value,
    weighted_average_cost,
)

__all__ = [
    "Batch",
    "ConsumptionLine",
    "ConsumptionResult",
    "consume_fefo",
    "fefo_order",
    "production_unit_cost",
    "total_quantity",
    "total_value",
    "weighted_average_cost",
]
