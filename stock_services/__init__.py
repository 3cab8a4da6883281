"""
Stock services -- stateful orchestration over the pure engines.

- ``ledger_service``: StockLedger and LedgerTransaction
- ``batch_repository``: SQL snapshot storage of ledger batches
"""

from stock_services.ledger_service import CountAdjustment, LedgerTransaction, StockLedger

__all__ = ["CountAdjustment", "LedgerTransaction", "StockLedger"]
