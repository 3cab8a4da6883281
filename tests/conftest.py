"""
Pytest fixtures for the stock ledger test suite.

Provides:
- Structured logging for the whole session and captured log records
- A ledger, catalog, document store and every document service wired
  with a deterministic clock and sequential ids
- An in-memory SQLite session for the batch repository
"""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO

import pytest

from stock_config.schema import LedgerConfig
from stock_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from stock_kernel.domain.clock import DeterministicClock
from stock_kernel.domain.ids import SequentialIdGenerator
from stock_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from stock_modules import build_services
from stock_modules.catalog import (
    Catalog,
    Location,
    LocationType,
    Product,
    ProductType,
    SalesUnit,
)
from stock_modules.store import DocumentStore
from stock_services.ledger_service import StockLedger

HUB = 1
STORE = 2
OTHER_STORE = 3

THIOF = 1
TUNA = 2
BROCHETTE = 3

THIOF_KG = 1
TUNA_STEAK = 2
BROCHETTE_PIECE = 3


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "fuzzing: property-based tests driven by hypothesis"
    )


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture stock_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, ledger):
            ledger.consume(1, 1, Decimal("5"))
            logs = captured_logs()
            assert any(r["message"] == "ledger_batches_consumed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("stock_kernel")
    root.addHandler(handler)

    def records() -> list[dict]:
        return [json.loads(line) for line in stream.getvalue().splitlines() if line]

    yield records

    root.removeHandler(handler)


# =============================================================================
# Ledger and collaborators
# =============================================================================


@pytest.fixture
def config():
    return LedgerConfig()


@pytest.fixture
def clock():
    """Fixed at 2025-08-01 08:00 UTC."""
    return DeterministicClock()


@pytest.fixture
def ids():
    return SequentialIdGenerator()


@pytest.fixture
def ledger(config):
    return StockLedger(config)


@pytest.fixture
def catalog():
    return Catalog(
        products=[
            Product(THIOF, "Thiof", "kg", Decimal("5000")),
            Product(TUNA, "Yellowfin tuna", "kg", Decimal("4200")),
            Product(BROCHETTE, "Fish brochette", "piece", Decimal("900"), ProductType.FINISHED_GOOD),
        ],
        sales_units=[
            SalesUnit(THIOF_KG, "Thiof whole 1kg", THIOF, Decimal("7500"), Decimal("1")),
            SalesUnit(TUNA_STEAK, "Tuna steak 250g", TUNA, Decimal("1800"), Decimal("0.25")),
            SalesUnit(BROCHETTE_PIECE, "Brochette", BROCHETTE, Decimal("1500"), Decimal("1")),
        ],
        locations=[
            Location(HUB, "Hub Dakar", LocationType.HUB),
            Location(STORE, "Store Almadies", LocationType.STORE),
            Location(OTHER_STORE, "Store Plateau", LocationType.STORE),
        ],
    )


@pytest.fixture
def store():
    return DocumentStore()


@pytest.fixture
def services(ledger, catalog, store, clock, ids, config):
    return build_services(ledger, catalog, store, clock, ids, config)


@pytest.fixture
def stocked_ledger(ledger):
    """
    Thiof at the hub: lot A 100 kg @ 5500 (exp 08-08), lot B 30 kg @ 5800
    (exp 08-10).  Tuna at the hub: lot T1 40 kg @ 4000 (exp 08-06).  Thiof
    at the store: lot S1 20 kg @ 5600 (exp 08-05).
    """
    ledger.receive(THIOF, HUB, Decimal("100"), Decimal("5500"), "A", date(2025, 8, 8), "BR-A")
    ledger.receive(THIOF, HUB, Decimal("30"), Decimal("5800"), "B", date(2025, 8, 10), "BR-B")
    ledger.receive(TUNA, HUB, Decimal("40"), Decimal("4000"), "T1", date(2025, 8, 6), "BR-T")
    ledger.receive(THIOF, STORE, Decimal("20"), Decimal("5600"), "S1", date(2025, 8, 5), "BR-S")
    return ledger


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def db_session():
    """Session on a fresh in-memory SQLite database."""
    init_engine_from_url("sqlite:///:memory:")
    create_tables()
    session = get_session()
    yield session
    session.close()
    drop_tables()
    reset_engine()
