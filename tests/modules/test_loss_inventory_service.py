"""Tests for LossService and InventoryService."""

from datetime import date
from decimal import Decimal

import pytest

from stock_kernel.exceptions import (
    DocumentStateError,
    InvalidStatusTransitionError,
    StockInsufficiencyError,
)
from stock_modules.inventory import InventoryService
from stock_modules.models import LossType
from stock_modules.workflows import InventoryStatus

HUB = 1
STORE = 2
OTHER_STORE = 3
THIOF = 1
TUNA = 2


class TestDeclareLoss:
    def test_loss_consumes_fefo_and_is_valued_at_cost(self, services, stocked_ledger):
        loss = services.losses.declare_loss(LossType.BREAKAGE, THIOF, HUB, Decimal("105"), "Crate dropped")

        assert loss.id == "PE-000001"
        assert loss.value == Decimal("579000")
        assert loss.loss_date == date(2025, 8, 1)
        assert stocked_ledger.on_hand(THIOF, HUB) == Decimal("25")

    def test_loss_value_rounded_half_up(self, services, ledger):
        ledger.receive(TUNA, STORE, Decimal("3"), Decimal("4000.5"), "T9", date(2025, 8, 6), "BR-T9")
        loss = services.losses.declare_loss(LossType.EXPIRED, TUNA, STORE, Decimal("1"))
        assert loss.value == Decimal("4001")

    @pytest.mark.parametrize("loss_type", [LossType.IN_TRANSIT, LossType.INVENTORY_GAP])
    def test_system_types_refused(self, services, stocked_ledger, loss_type):
        with pytest.raises(DocumentStateError):
            services.losses.declare_loss(loss_type, THIOF, HUB, Decimal("1"))
        assert stocked_ledger.on_hand(THIOF, HUB) == Decimal("130")

    def test_shortage_records_nothing(self, services, stocked_ledger):
        with pytest.raises(StockInsufficiencyError) as exc_info:
            services.losses.declare_loss(LossType.THEFT, TUNA, HUB, Decimal("41"))
        assert exc_info.value.problems[0].shortfall == Decimal("1")
        assert stocked_ledger.on_hand(TUNA, HUB) == Decimal("40")
        assert services.losses.list_losses() == []

    def test_non_positive_quantity_rejected(self, services, stocked_ledger):
        with pytest.raises(ValueError):
            services.losses.declare_loss(LossType.EXPIRED, THIOF, HUB, Decimal("0"))

    def test_total_value_per_location(self, services, stocked_ledger):
        services.losses.declare_loss(LossType.EXPIRED, THIOF, STORE, Decimal("2"))
        services.losses.declare_loss(LossType.UNSOLD, TUNA, HUB, Decimal("1"))

        assert services.losses.total_value(location_id=STORE) == Decimal("11200")
        assert services.losses.total_value() == Decimal("15200")
        assert services.losses.total_value(since=date(2025, 8, 2)) == Decimal("0")


class TestInventoryCount:
    def test_start_lists_products_on_hand(self, services, stocked_ledger):
        inventory = services.inventories.start(HUB)

        assert inventory.status == InventoryStatus.IN_PROGRESS
        assert [(l.product_id, l.theoretical_quantity) for l in inventory.lines] == [
            (THIOF, Decimal("130")),
            (TUNA, Decimal("40")),
        ]
        assert all(l.physical_quantity is None for l in inventory.lines)

    def test_start_skips_drained_products(self, services, stocked_ledger):
        stocked_ledger.consume(TUNA, HUB, Decimal("40"))
        inventory = services.inventories.start(HUB)
        assert [l.product_id for l in inventory.lines] == [THIOF]

    def test_gap_within_epsilon_posts_nothing(self, services, stocked_ledger):
        inventory = services.inventories.start(STORE)
        services.inventories.submit(inventory.id, {THIOF: Decimal("20.0005")})
        validated = services.inventories.validate(inventory.id)

        assert validated.gain_value == Decimal("0")
        assert [b.lot for b in stocked_ledger.batches(THIOF, STORE)] == ["S1"]
        assert services.losses.list_losses() == []

    def test_explicit_collaborators(self, services, ledger, catalog, store, clock, ids, stocked_ledger):
        inventories = InventoryService(ledger, catalog, store, clock=clock, ids=ids, losses=services.losses)
        inventory = inventories.start(STORE)
        validated = inventories.correct_and_validate(inventory.id, {THIOF: Decimal("18")})

        assert validated.loss_value == Decimal("11200")
        assert services.losses.list_losses(source_ref=inventory.id)[0].value == Decimal("11200")

    def test_second_open_count_refused(self, services, stocked_ledger):
        services.inventories.start(STORE)
        with pytest.raises(DocumentStateError):
            services.inventories.start(STORE)
        services.inventories.start(HUB)

    def test_submit_then_validate_posts_gaps(self, services, stocked_ledger):
        inventory = services.inventories.start(STORE)
        submitted = services.inventories.submit(inventory.id, {THIOF: Decimal("18"), TUNA: Decimal("2")})
        assert submitted.status == InventoryStatus.AWAITING_VALIDATION
        assert submitted.line_for(TUNA).theoretical_quantity == Decimal("0")

        validated = services.inventories.validate(inventory.id)

        assert validated.status == InventoryStatus.VALIDATED
        assert validated.validated_date == date(2025, 8, 1)
        assert validated.loss_value == Decimal("11200")
        assert validated.gain_value == Decimal("8400")
        assert stocked_ledger.on_hand(THIOF, STORE) == Decimal("18")

        gain = stocked_ledger.batches(TUNA, STORE)[0]
        assert gain.lot == f"INV-GAIN-{inventory.id}"
        assert gain.unit_cost == Decimal("4200")
        assert gain.expiry_date == date(2999, 12, 31)

        gap_losses = services.losses.list_losses(loss_type=LossType.INVENTORY_GAP)
        assert [(l.quantity, l.value, l.source_ref) for l in gap_losses] == [
            (Decimal("2"), Decimal("11200"), inventory.id),
        ]
        assert services.inventories.open_inventories() == []

    def test_gain_costed_at_weighted_average(self, services, stocked_ledger):
        inventory = services.inventories.start(HUB)
        services.inventories.submit(inventory.id, {THIOF: Decimal("131"), TUNA: Decimal("40")})
        validated = services.inventories.validate(inventory.id)

        # 724000 / 130 = 5569.23...; stored in whole francs
        assert validated.gain_value == Decimal("5569")
        assert stocked_ledger.batches(THIOF, HUB)[-1].unit_cost == Decimal("724000") / Decimal("130")
        assert validated.loss_value == Decimal("0")

    def test_uncounted_line_refused(self, services, stocked_ledger):
        inventory = services.inventories.start(HUB)
        with pytest.raises(DocumentStateError):
            services.inventories.submit(inventory.id, {THIOF: Decimal("130")})
        assert services.inventories.get(inventory.id).status == InventoryStatus.IN_PROGRESS

    def test_negative_count_refused(self, services, stocked_ledger):
        inventory = services.inventories.start(STORE)
        with pytest.raises(ValueError):
            services.inventories.submit(inventory.id, {THIOF: Decimal("-1")})

    def test_validate_before_submit_refused(self, services, stocked_ledger):
        inventory = services.inventories.start(STORE)
        with pytest.raises(InvalidStatusTransitionError):
            services.inventories.validate(inventory.id)

    def test_correct_and_validate(self, services, stocked_ledger):
        inventory = services.inventories.start(STORE)
        services.inventories.submit(inventory.id, {THIOF: Decimal("5")})

        validated = services.inventories.correct_and_validate(inventory.id, {THIOF: Decimal("19")})

        assert validated.line_for(THIOF).physical_quantity == Decimal("19")
        assert validated.loss_value == Decimal("5600")
        assert stocked_ledger.on_hand(THIOF, STORE) == Decimal("19")

    def test_correct_and_validate_from_in_progress(self, services, stocked_ledger):
        inventory = services.inventories.start(STORE)
        validated = services.inventories.correct_and_validate(inventory.id, {THIOF: Decimal("20")})
        assert validated.status == InventoryStatus.VALIDATED
        assert validated.loss_value == Decimal("0")
        assert validated.gain_value == Decimal("0")

    def test_empty_location_count(self, services, stocked_ledger):
        inventory = services.inventories.start(OTHER_STORE)
        assert inventory.lines == ()
        validated = services.inventories.correct_and_validate(inventory.id, {})
        assert validated.status == InventoryStatus.VALIDATED
