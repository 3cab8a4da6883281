"""
Document Workflows.

State machines for every business document.  Each transition that
touches physical stock is flagged ``moves_stock``; services perform the
ledger work inside a LedgerTransaction and only then change the status.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from stock_kernel.exceptions import InvalidStatusTransitionError
from stock_kernel.logging_config import get_logger

logger = get_logger("modules.workflows")


class PurchaseOrderStatus(Enum):
    DRAFT = "draft"
    SENT = "sent"
    COMPLETED = "completed"


class TransferStatus(Enum):
    IN_TRANSIT = "in_transit"
    COMPLETED = "completed"
    COMPLETED_WITH_GAP = "completed_with_gap"


class InventoryStatus(Enum):
    IN_PROGRESS = "in_progress"
    AWAITING_VALIDATION = "awaiting_validation"
    VALIDATED = "validated"


class ClosureStatus(Enum):
    DRAFT = "draft"
    CLOSED = "closed"
    VALIDATED = "validated"


class SalesOrderStatus(Enum):
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    DELIVERED = "delivered"
    INVOICED = "invoiced"


class InvoiceStatus(Enum):
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"


class ProductionStatus(Enum):
    PLANNED = "planned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


@dataclass(frozen=True)
class Transition:
    """A valid state transition."""
    from_state: Enum
    to_state: Enum
    action: str
    moves_stock: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition."""
    name: str
    description: str
    initial_state: Enum
    transitions: tuple[Transition, ...]

    def find(self, from_state: Enum, to_state: Enum) -> Transition | None:
        for t in self.transitions:
            if t.from_state == from_state and t.to_state == to_state:
                return t
        return None

    def allowed_targets(self, from_state: Enum) -> tuple[Enum, ...]:
        return tuple(t.to_state for t in self.transitions if t.from_state == from_state)

    def require(self, document_id: object, from_state: Enum, to_state: Enum) -> Transition:
        """
        Return the transition or raise.

        Raises:
            InvalidStatusTransitionError: If ``from_state -> to_state`` is
                not part of this workflow.
        """
        transition = self.find(from_state, to_state)
        if transition is None:
            logger.warning("workflow_transition_refused", extra={
                "workflow": self.name,
                "document_id": str(document_id),
                "from_state": from_state.value,
                "to_state": to_state.value,
            })
            raise InvalidStatusTransitionError(
                self.description, document_id, from_state.value, to_state.value
            )
        return transition


PURCHASE_ORDER_WORKFLOW = Workflow(
    name="purchase_order",
    description="Purchase order",
    initial_state=PurchaseOrderStatus.DRAFT,
    transitions=(
        Transition(PurchaseOrderStatus.DRAFT, PurchaseOrderStatus.SENT, action="send"),
        Transition(PurchaseOrderStatus.SENT, PurchaseOrderStatus.COMPLETED, action="receive", moves_stock=True),
        Transition(PurchaseOrderStatus.DRAFT, PurchaseOrderStatus.COMPLETED, action="receive", moves_stock=True),
    ),
)

TRANSFER_WORKFLOW = Workflow(
    name="transfer",
    description="Transfer",
    initial_state=TransferStatus.IN_TRANSIT,
    transitions=(
        Transition(TransferStatus.IN_TRANSIT, TransferStatus.COMPLETED, action="receive", moves_stock=True),
        Transition(TransferStatus.IN_TRANSIT, TransferStatus.COMPLETED_WITH_GAP, action="receive", moves_stock=True),
    ),
)

INVENTORY_WORKFLOW = Workflow(
    name="inventory",
    description="Inventory",
    initial_state=InventoryStatus.IN_PROGRESS,
    transitions=(
        Transition(InventoryStatus.IN_PROGRESS, InventoryStatus.AWAITING_VALIDATION, action="submit"),
        Transition(InventoryStatus.AWAITING_VALIDATION, InventoryStatus.VALIDATED, action="validate", moves_stock=True),
        Transition(InventoryStatus.IN_PROGRESS, InventoryStatus.VALIDATED, action="correct_and_validate", moves_stock=True),
    ),
)

CLOSURE_WORKFLOW = Workflow(
    name="sale_closure",
    description="Sale closure",
    initial_state=ClosureStatus.DRAFT,
    transitions=(
        Transition(ClosureStatus.DRAFT, ClosureStatus.CLOSED, action="close"),
        Transition(ClosureStatus.CLOSED, ClosureStatus.VALIDATED, action="validate", moves_stock=True),
    ),
)

SALES_ORDER_WORKFLOW = Workflow(
    name="sales_order",
    description="Sales order",
    initial_state=SalesOrderStatus.CONFIRMED,
    transitions=(
        Transition(SalesOrderStatus.CONFIRMED, SalesOrderStatus.PREPARING, action="prepare"),
        Transition(SalesOrderStatus.CONFIRMED, SalesOrderStatus.DELIVERED, action="deliver", moves_stock=True),
        Transition(SalesOrderStatus.PREPARING, SalesOrderStatus.DELIVERED, action="deliver", moves_stock=True),
        Transition(SalesOrderStatus.DELIVERED, SalesOrderStatus.INVOICED, action="invoice"),
    ),
)

INVOICE_WORKFLOW = Workflow(
    name="invoice",
    description="Invoice",
    initial_state=InvoiceStatus.SENT,
    transitions=(
        Transition(InvoiceStatus.DRAFT, InvoiceStatus.SENT, action="send"),
        Transition(InvoiceStatus.SENT, InvoiceStatus.PAID, action="pay"),
        Transition(InvoiceStatus.SENT, InvoiceStatus.OVERDUE, action="mark_overdue"),
        Transition(InvoiceStatus.OVERDUE, InvoiceStatus.PAID, action="pay"),
    ),
)

PRODUCTION_WORKFLOW = Workflow(
    name="production_order",
    description="Production order",
    initial_state=ProductionStatus.PLANNED,
    transitions=(
        Transition(ProductionStatus.PLANNED, ProductionStatus.IN_PROGRESS, action="start"),
        Transition(ProductionStatus.IN_PROGRESS, ProductionStatus.COMPLETED, action="complete", moves_stock=True),
    ),
)

ALL_WORKFLOWS = (
    PURCHASE_ORDER_WORKFLOW,
    TRANSFER_WORKFLOW,
    INVENTORY_WORKFLOW,
    CLOSURE_WORKFLOW,
    SALES_ORDER_WORKFLOW,
    INVOICE_WORKFLOW,
    PRODUCTION_WORKFLOW,
)

logger.debug(
    "document_workflows_registered",
    extra={"workflows": [w.name for w in ALL_WORKFLOWS]},
)
