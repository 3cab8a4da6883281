"""
Business document models.

Every document is a frozen dataclass; a status change or a posting
result produces a new version via ``dataclasses.replace`` which the
service stores back in the DocumentStore.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

from stock_modules.workflows import (
    ClosureStatus,
    InventoryStatus,
    InvoiceStatus,
    ProductionStatus,
    PurchaseOrderStatus,
    SalesOrderStatus,
    TransferStatus,
)

ZERO = Decimal("0")


class LossType(Enum):
    """Why stock left the ledger without being sold."""
    UNSOLD = "unsold"
    BREAKAGE = "breakage"
    EXPIRED = "expired"
    THEFT = "theft"
    CUSTOMER_GIFT = "customer_gift"
    IN_TRANSIT = "in_transit"
    INVENTORY_GAP = "inventory_gap"

    @property
    def is_system(self) -> bool:
        """System types are only created by transfers and inventory counts."""
        return self in (LossType.IN_TRANSIT, LossType.INVENTORY_GAP)


# =============================================================================
# Purchasing
# =============================================================================


@dataclass(frozen=True)
class PurchaseOrderLine:
    product_id: int
    quantity: Decimal
    unit_price: Decimal

    @property
    def amount(self) -> Decimal:
        return self.quantity * self.unit_price


@dataclass(frozen=True)
class PurchaseOrder:
    id: str
    supplier: str
    order_date: date
    lines: tuple[PurchaseOrderLine, ...]
    status: PurchaseOrderStatus = PurchaseOrderStatus.DRAFT
    expected_date: date | None = None
    arrival_id: str | None = None

    @property
    def total_amount(self) -> Decimal:
        return sum((line.amount for line in self.lines), ZERO)


@dataclass(frozen=True)
class ArrivalLine:
    """One received lot."""
    product_id: int
    quantity: Decimal
    unit_cost: Decimal
    lot: str
    expiry_date: date

    @property
    def value(self) -> Decimal:
        return self.quantity * self.unit_cost


@dataclass(frozen=True)
class Arrival:
    """Goods receipt at a location; each line becomes one batch."""
    id: str
    supplier: str
    location_id: int
    arrival_date: date
    lines: tuple[ArrivalLine, ...]
    purchase_order_id: str | None = None

    @property
    def total_value(self) -> Decimal:
        return sum((line.value for line in self.lines), ZERO)


# =============================================================================
# Stock movements
# =============================================================================


@dataclass(frozen=True)
class TransferLine:
    """One consumed slice shipped from the source location."""
    product_id: int
    lot: str
    sent_quantity: Decimal
    unit_cost: Decimal
    expiry_date: date
    received_quantity: Decimal | None = None

    @property
    def discrepancy(self) -> Decimal:
        """Quantity lost in transit (0 until received)."""
        if self.received_quantity is None:
            return ZERO
        return self.sent_quantity - self.received_quantity

    @property
    def sent_value(self) -> Decimal:
        return self.sent_quantity * self.unit_cost


@dataclass(frozen=True)
class Transfer:
    id: str
    from_location_id: int
    to_location_id: int
    dispatch_date: date
    lines: tuple[TransferLine, ...]
    status: TransferStatus = TransferStatus.IN_TRANSIT
    received_date: date | None = None

    @property
    def sent_value(self) -> Decimal:
        return sum((line.sent_value for line in self.lines), ZERO)


@dataclass(frozen=True)
class Loss:
    id: str
    loss_type: LossType
    product_id: int
    location_id: int
    quantity: Decimal
    value: Decimal
    loss_date: date
    source_ref: str | None = None
    note: str = ""


@dataclass(frozen=True)
class InventoryLine:
    product_id: int
    theoretical_quantity: Decimal
    physical_quantity: Decimal | None = None

    @property
    def gap(self) -> Decimal | None:
        if self.physical_quantity is None:
            return None
        return self.physical_quantity - self.theoretical_quantity


@dataclass(frozen=True)
class Inventory:
    """A physical stock count at one location."""
    id: str
    location_id: int
    start_date: date
    lines: tuple[InventoryLine, ...]
    status: InventoryStatus = InventoryStatus.IN_PROGRESS
    validated_date: date | None = None
    loss_value: Decimal = ZERO
    gain_value: Decimal = ZERO

    def line_for(self, product_id: int) -> InventoryLine | None:
        for line in self.lines:
            if line.product_id == product_id:
                return line
        return None


# =============================================================================
# Sales
# =============================================================================


@dataclass(frozen=True)
class SaleLine:
    """Quantity of a sales unit sold at the till over the day."""
    sales_unit_id: int
    quantity: Decimal
    unit_price: Decimal
    cogs: Decimal | None = None

    @property
    def revenue(self) -> Decimal:
        return self.quantity * self.unit_price


@dataclass(frozen=True)
class SaleClosure:
    """End-of-day sales report of one store."""
    id: str
    location_id: int
    closure_date: date
    lines: tuple[SaleLine, ...]
    status: ClosureStatus = ClosureStatus.DRAFT
    total_cogs: Decimal | None = None
    validated_date: date | None = None

    @property
    def total_revenue(self) -> Decimal:
        return sum((line.revenue for line in self.lines), ZERO)

    @property
    def gross_margin(self) -> Decimal | None:
        if self.total_cogs is None:
            return None
        return self.total_revenue - self.total_cogs


@dataclass(frozen=True)
class SalesOrderLine:
    sales_unit_id: int
    quantity: Decimal
    unit_price: Decimal
    cogs: Decimal | None = None

    @property
    def amount(self) -> Decimal:
        return self.quantity * self.unit_price


@dataclass(frozen=True)
class SalesOrder:
    """B2B order shipped from the hub."""
    id: str
    customer: str
    order_date: date
    lines: tuple[SalesOrderLine, ...]
    status: SalesOrderStatus = SalesOrderStatus.CONFIRMED
    delivery_date: date | None = None
    total_cogs: Decimal | None = None
    invoice_id: str | None = None

    @property
    def total_amount(self) -> Decimal:
        return sum((line.amount for line in self.lines), ZERO)

    @property
    def gross_margin(self) -> Decimal | None:
        if self.total_cogs is None:
            return None
        return self.total_amount - self.total_cogs


@dataclass(frozen=True)
class InvoiceLine:
    description: str
    quantity: Decimal
    unit_price: Decimal

    @property
    def amount(self) -> Decimal:
        return self.quantity * self.unit_price


@dataclass(frozen=True)
class Invoice:
    id: str
    sales_order_id: str
    customer: str
    issue_date: date
    due_date: date
    lines: tuple[InvoiceLine, ...]
    status: InvoiceStatus = InvoiceStatus.SENT
    paid_date: date | None = None

    @property
    def total_amount(self) -> Decimal:
        return sum((line.amount for line in self.lines), ZERO)


# =============================================================================
# Production
# =============================================================================


@dataclass(frozen=True)
class RecipeLine:
    """Component quantity per unit of output."""
    product_id: int
    quantity: Decimal


@dataclass(frozen=True)
class ProductionRecipe:
    id: str
    name: str
    output_product_id: int
    lines: tuple[RecipeLine, ...]


@dataclass(frozen=True)
class ProductionOrder:
    id: str
    recipe_id: str
    planned_quantity: Decimal
    created_date: date
    status: ProductionStatus = ProductionStatus.PLANNED
    actual_quantity: Decimal | None = None
    total_cost: Decimal | None = None
    completed_date: date | None = None
    batch_lot: str | None = None

    @property
    def unit_cost(self) -> Decimal | None:
        if self.total_cost is None or not self.actual_quantity:
            return None
        return self.total_cost / self.actual_quantity
