"""
Ledger Configuration Schema.

Defines the structure and defaults for ledger and document settings.
Actual values are loaded from a YAML configuration set at runtime.
"""

from dataclasses import dataclass, fields
from datetime import date
from decimal import Decimal
from typing import Any, Self

from stock_kernel.logging_config import get_logger

logger = get_logger("config.schema")


@dataclass(frozen=True)
class LedgerConfig:
    """
    Configuration schema for the batch ledger and its document services.

    Field defaults reproduce the fish-retail chain's behavior:

        config = LedgerConfig(
            hub_location_id=1,
            production_shelf_life_days=5,
            **load_config(path).overrides,
        )
    """

    # Quantity tolerance, in the product's stock unit
    epsilon: Decimal = Decimal("0.001")

    # Valuation currency (CFA franc has no minor unit)
    currency: str = "XOF"
    currency_decimal_places: int = 0

    # Production and sales-order deliveries happen at the hub
    hub_location_id: int = 1

    # Production output expiry = completion date + shelf life
    production_shelf_life_days: int = 5

    # Surplus batches from inventory counts never win a FEFO walk
    inventory_gain_expiry: date = date(2999, 12, 31)

    invoice_due_days: int = 30

    # Received transfer lots are named "{lot}-{suffix}-{transfer_id}"
    lot_suffix_transfer: str = "TR"

    def __post_init__(self):
        if not isinstance(self.epsilon, Decimal):
            object.__setattr__(self, "epsilon", Decimal(str(self.epsilon)))
        if isinstance(self.inventory_gain_expiry, str):
            object.__setattr__(
                self, "inventory_gain_expiry", date.fromisoformat(self.inventory_gain_expiry)
            )

        if self.epsilon <= 0:
            raise ValueError("epsilon must be positive")
        if self.epsilon >= 1:
            raise ValueError(f"epsilon must be below one stock unit, got {self.epsilon}")
        if len(self.currency) != 3 or not self.currency.isalpha():
            raise ValueError(f"currency must be a 3-letter code, got '{self.currency}'")
        if self.currency_decimal_places < 0:
            raise ValueError("currency_decimal_places cannot be negative")
        if self.production_shelf_life_days < 0:
            raise ValueError("production_shelf_life_days cannot be negative")
        if self.invoice_due_days < 0:
            raise ValueError("invoice_due_days cannot be negative")
        if not self.lot_suffix_transfer:
            raise ValueError("lot_suffix_transfer cannot be empty")

        logger.info(
            "ledger_config_initialized",
            extra={
                "epsilon": str(self.epsilon),
                "currency": self.currency,
                "hub_location_id": self.hub_location_id,
                "production_shelf_life_days": self.production_shelf_life_days,
                "inventory_gain_expiry": self.inventory_gain_expiry.isoformat(),
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with the chain's defaults."""
        logger.info("ledger_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Create config from a dictionary (e.g., parsed YAML).

        Raises:
            KeyError: If ``data`` holds a key that is not a config field.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise KeyError(f"Unknown ledger config keys: {unknown}")
        logger.info(
            "ledger_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)
