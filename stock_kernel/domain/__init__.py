"""
Pure domain layer.

Value helpers, clocks and id generation with NO dependency on the ORM,
the database or the ledger services.
"""

from stock_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from stock_kernel.domain.ids import IdGenerator, SequentialIdGenerator, UuidIdGenerator
from stock_kernel.domain.values import EPSILON, ZERO, round_money, to_decimal

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "IdGenerator",
    "SequentialIdGenerator",
    "UuidIdGenerator",
    "EPSILON",
    "ZERO",
    "round_money",
    "to_decimal",
]
