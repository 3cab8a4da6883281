"""
Stock engines -- pure calculation layer.

Engines take value objects in and return value objects out.  They hold no
state, perform no I/O and never touch the ledger directly.
"""
