"""
Stock Kernel

Shared foundation for the batch inventory ledger:
- Structured JSON logging
- Typed exceptions with machine-readable codes
- Injectable clock and id generation
- SQLAlchemy base classes and batch persistence models
"""

__version__ = "0.1.0"
