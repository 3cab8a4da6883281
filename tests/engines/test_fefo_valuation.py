"""
Tests for the pure FEFO valuation engine.

Covers batch value objects, the FEFO walk (ordering, ties, pruning,
shortfall) and the weighted-average helpers.
"""

from datetime import date
from decimal import Decimal

import pytest

from stock_engines.valuation import (
    Batch,
    ConsumptionLine,
    consume_fefo,
    fefo_order,
    production_unit_cost,
    total_quantity,
    total_value,
    weighted_average_cost,
)


def _batch(lot, quantity, unit_cost, expiry, sequence=0):
    return Batch.create(
        product_id=1,
        location_id=1,
        lot=lot,
        quantity=Decimal(quantity),
        unit_cost=Decimal(unit_cost),
        expiry_date=expiry,
        source_ref=f"BR-{lot}",
        sequence=sequence,
    )


@pytest.fixture
def two_lots():
    return (
        _batch("A", "100", "5500", date(2025, 8, 8), 1),
        _batch("B", "30", "5800", date(2025, 8, 10), 2),
    )


class TestBatch:
    def test_create_converts_to_decimal(self):
        batch = Batch.create(1, 1, "A", 10, "5500", date(2025, 8, 8), "BR-1")
        assert batch.quantity == Decimal("10")
        assert batch.unit_cost == Decimal("5500")
        assert batch.value == Decimal("55000")

    @pytest.mark.parametrize("quantity", ["0", "-1"])
    def test_create_rejects_non_positive_quantity(self, quantity):
        with pytest.raises(ValueError):
            Batch.create(1, 1, "A", quantity, "10", date(2025, 8, 8), "BR-1")

    def test_negative_cost_rejected(self):
        with pytest.raises(ValueError):
            Batch.create(1, 1, "A", "1", "-10", date(2025, 8, 8), "BR-1")

    def test_float_rejected(self):
        with pytest.raises(TypeError):
            Batch.create(1, 1, "A", 1.5, "10", date(2025, 8, 8), "BR-1")

    def test_with_quantity_keeps_cost_and_expiry(self):
        batch = _batch("A", "10", "100", date(2025, 8, 8))
        smaller = batch.with_quantity(Decimal("4"))
        assert smaller.quantity == Decimal("4")
        assert smaller.unit_cost == batch.unit_cost
        assert smaller.expiry_date == batch.expiry_date

    def test_consumption_line_cost(self):
        line = ConsumptionLine.from_batch(_batch("A", "10", "100", date(2025, 8, 8)), Decimal("3"))
        assert line.cost == Decimal("300")
        assert line.lot == "A"


class TestFefoOrder:
    def test_earliest_expiry_first(self):
        late = _batch("L", "1", "1", date(2025, 9, 1), 1)
        early = _batch("E", "1", "1", date(2025, 8, 1), 2)
        assert [b.lot for b in fefo_order([late, early])] == ["E", "L"]

    def test_ties_keep_insertion_order(self):
        first = _batch("X", "1", "1", date(2025, 8, 1), 5)
        second = _batch("Y", "1", "1", date(2025, 8, 1), 6)
        assert [b.lot for b in fefo_order([second, first])] == ["X", "Y"]


class TestConsumeFefo:
    def test_scenario_consume_110_across_two_lots(self, two_lots):
        """100 of A @ 5500 + 10 of B @ 5800 = 608000; B keeps 20."""
        result, remaining = consume_fefo(two_lots, 1, 1, Decimal("110"))

        assert result.total_cost == Decimal("608000")
        assert result.shortfall == Decimal("0")
        assert [(l.lot, l.quantity_taken) for l in result.lines] == [
            ("A", Decimal("100")),
            ("B", Decimal("10")),
        ]
        assert len(remaining) == 1
        assert remaining[0].lot == "B"
        assert remaining[0].quantity == Decimal("20")

    def test_scenario_shortfall(self, two_lots):
        result, remaining = consume_fefo(two_lots, 1, 1, Decimal("200"))

        assert result.is_short
        assert result.shortfall == Decimal("70")
        assert result.quantity_taken == Decimal("130")
        assert result.total_cost == Decimal("724000")
        assert remaining == ()

    def test_input_not_modified(self, two_lots):
        consume_fefo(two_lots, 1, 1, Decimal("120"))
        assert two_lots[0].quantity == Decimal("100")
        assert two_lots[1].quantity == Decimal("30")

    def test_storage_order_kept(self):
        late = _batch("L", "10", "1", date(2025, 9, 1), 1)
        early = _batch("E", "10", "1", date(2025, 8, 1), 2)
        result, remaining = consume_fefo((late, early), 1, 1, Decimal("5"))

        assert result.lines[0].lot == "E"
        assert [b.lot for b in remaining] == ["L", "E"]
        assert remaining[1].quantity == Decimal("5")

    def test_dust_below_epsilon_pruned(self):
        batch = _batch("A", "10.0005", "100", date(2025, 8, 8))
        result, remaining = consume_fefo((batch,), 1, 1, Decimal("10"))
        assert remaining == ()
        assert not result.is_short

    def test_remaining_within_epsilon_stops_walk(self):
        """A request exceeding stock by less than epsilon is not short."""
        batch = _batch("A", "10", "100", date(2025, 8, 8))
        result, _ = consume_fefo((batch,), 1, 1, Decimal("10.0005"))
        assert result.shortfall == Decimal("0.0005")
        assert not result.is_short

    def test_result_carries_walk_epsilon(self):
        batch = _batch("A", "10", "100", date(2025, 8, 8))
        result, remaining = consume_fefo((batch,), 1, 1, Decimal("10.005"), epsilon=Decimal("0.01"))
        assert result.epsilon == Decimal("0.01")
        assert not result.is_short
        assert remaining == ()

    def test_empty_collection(self):
        result, remaining = consume_fefo((), 1, 1, Decimal("5"))
        assert result.lines == ()
        assert result.shortfall == Decimal("5")
        assert result.total_cost == Decimal("0")
        assert remaining == ()

    def test_zero_quantity_is_noop(self, two_lots):
        result, remaining = consume_fefo(two_lots, 1, 1, Decimal("0"))
        assert result.lines == ()
        assert remaining == two_lots

    def test_negative_quantity_rejected(self, two_lots):
        with pytest.raises(ValueError):
            consume_fefo(two_lots, 1, 1, Decimal("-1"))

    def test_lines_carry_lot_cost_and_expiry(self, two_lots):
        result, _ = consume_fefo(two_lots, 1, 1, Decimal("120"))
        line_b = result.lines[1]
        assert line_b.unit_cost == Decimal("5800")
        assert line_b.expiry_date == date(2025, 8, 10)
        assert line_b.source_ref == "BR-B"

    def test_average_unit_cost(self, two_lots):
        result, _ = consume_fefo(two_lots, 1, 1, Decimal("110"))
        assert result.average_unit_cost == Decimal("608000") / Decimal("110")


class TestWeightedAverage:
    def test_weighted_average(self, two_lots):
        expected = (Decimal("550000") + Decimal("174000")) / Decimal("130")
        assert weighted_average_cost(two_lots) == expected

    def test_empty_is_none(self):
        assert weighted_average_cost(()) is None

    def test_totals(self, two_lots):
        assert total_quantity(two_lots) == Decimal("130")
        assert total_value(two_lots) == Decimal("724000")

    def test_production_unit_cost(self):
        assert production_unit_cost(Decimal("9000"), Decimal("45")) == Decimal("200")

    def test_production_unit_cost_rejects_zero(self):
        with pytest.raises(ValueError):
            production_unit_cost(Decimal("9000"), 0)
