"""Tests for the pure domain helpers: values, ids, clocks."""

from datetime import UTC, date, datetime
from decimal import Decimal

import pytest

from stock_kernel.domain.clock import DeterministicClock, SystemClock
from stock_kernel.domain.ids import SequentialIdGenerator, UuidIdGenerator
from stock_kernel.domain.values import EPSILON, round_money, to_decimal


class TestToDecimal:
    def test_int_and_str_accepted(self):
        assert to_decimal(5) == Decimal("5")
        assert to_decimal("0.25") == Decimal("0.25")

    def test_decimal_returned_unchanged(self):
        value = Decimal("1.10")
        assert to_decimal(value) is value

    def test_float_rejected(self):
        """Binary floats never enter the ledger."""
        with pytest.raises(TypeError):
            to_decimal(0.1)

    def test_bool_rejected(self):
        with pytest.raises(TypeError):
            to_decimal(True)

    @pytest.mark.parametrize("value", ["abc", "NaN", "Infinity"])
    def test_non_finite_rejected(self, value):
        with pytest.raises(ValueError):
            to_decimal(value)

    def test_epsilon_is_one_gram(self):
        assert EPSILON == Decimal("0.001")


class TestRoundMoney:
    def test_half_up_to_whole_francs(self):
        assert round_money(Decimal("608000.5"), 0) == Decimal("608001")
        assert round_money(Decimal("12.49"), 0) == Decimal("12")

    def test_two_places(self):
        assert round_money(Decimal("1.005"), 2) == Decimal("1.01")


class TestIdGenerators:
    def test_sequential_per_prefix(self):
        ids = SequentialIdGenerator()
        assert ids.next_id("TR") == "TR-000001"
        assert ids.next_id("TR") == "TR-000002"
        assert ids.next_id("BR") == "BR-000001"

    def test_sequential_width(self):
        assert SequentialIdGenerator(width=3).next_id("OF") == "OF-001"

    def test_uuid_unique(self):
        ids = UuidIdGenerator()
        first, second = ids.next_id("PE"), ids.next_id("PE")
        assert first != second
        assert first.startswith("PE-")


class TestClocks:
    def test_deterministic_default(self):
        clock = DeterministicClock()
        assert clock.today() == date(2025, 8, 1)
        assert clock.now() == clock.now()

    def test_advance_days(self):
        clock = DeterministicClock()
        clock.advance(days=31)
        assert clock.today() == date(2025, 9, 1)

    def test_set_time_resets_advance(self):
        clock = DeterministicClock()
        clock.advance(days=3)
        clock.set_time(datetime(2026, 1, 1, tzinfo=UTC))
        assert clock.today() == date(2026, 1, 1)

    def test_system_clock_is_aware(self):
        assert SystemClock().now().tzinfo is not None
