"""
Typed exception hierarchy for the stock kernel.

Every error has a typed class and a ``code`` class attribute so callers
catch by type and APIs report a stable machine-readable code. Context is
stored as attributes, never only in the message string.

    StockKernelError (base)
    |
    +-- StockTransactionError           (abort of a multi-line transaction)
    |   +-- StockInsufficiencyError
    |   +-- ReferenceNotFoundError
    |       +-- DocumentNotFoundError
    |
    +-- LedgerError
    |   +-- DuplicateLotError
    |
    +-- DocumentError
        +-- InvalidStatusTransitionError
        +-- DocumentStateError

Code                        | When raised
----------------------------|----------------------------------------------
STOCK_INSUFFICIENT          | a consume could not be covered within tolerance
REFERENCE_NOT_FOUND         | product, sales unit or location unknown
DOCUMENT_NOT_FOUND          | business document id unknown
DUPLICATE_LOT               | lot already held at (product, location)
INVALID_STATUS_TRANSITION   | document status change not allowed
DOCUMENT_STATE              | operation not allowed in the document's state

Both ``StockTransactionError`` kinds abort the enclosing transaction and
leave the ledger unmodified. Value-object contract violations (negative
quantity, negative cost) raise plain ``ValueError``.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


class StockKernelError(Exception):
    """
    Base exception for all stock kernel errors.

    All subclasses must have a ``code`` class attribute.
    """

    code: str = "STOCK_KERNEL_ERROR"


# Transaction abort exceptions


@dataclass(frozen=True, slots=True)
class LineProblem:
    """
    One reason a multi-line stock transaction cannot be committed.

    ``code`` is the code of the exception kind the problem maps to.
    """

    code: str
    message: str
    product_id: int | None = None
    location_id: int | None = None
    shortfall: Decimal | None = None

    @property
    def is_shortage(self) -> bool:
        return self.code == StockInsufficiencyError.code


class StockTransactionError(StockKernelError):
    """Base for errors that abort a whole stock transaction."""

    code: str = "STOCK_TRANSACTION_ERROR"

    def __init__(self, problems: tuple[LineProblem, ...] | list[LineProblem]):
        self.problems = tuple(problems)
        super().__init__("; ".join(self.messages))

    @property
    def messages(self) -> list[str]:
        """Human-readable message per affected line."""
        return [p.message for p in self.problems]


class StockInsufficiencyError(StockTransactionError):
    """Requested quantity exceeds what the batches can cover."""

    code: str = "STOCK_INSUFFICIENT"

    @classmethod
    def for_line(
        cls,
        product_id: int,
        location_id: int,
        shortfall: Decimal,
        unit: str = "",
        product_name: str | None = None,
    ) -> StockInsufficiencyError:
        return cls([shortage_problem(product_id, location_id, shortfall, unit, product_name)])


class ReferenceNotFoundError(StockTransactionError):
    """A referenced product, sales unit, location or document does not exist."""

    code: str = "REFERENCE_NOT_FOUND"

    def __init__(
        self,
        kind: str | None = None,
        reference: object = None,
        problems: tuple[LineProblem, ...] | list[LineProblem] | None = None,
    ):
        self.kind = kind
        self.reference = reference
        if problems is None:
            problems = [reference_problem(kind or "reference", reference)]
        super().__init__(problems)


class DocumentNotFoundError(ReferenceNotFoundError):
    """Business document with given id was not found."""

    code: str = "DOCUMENT_NOT_FOUND"

    def __init__(self, kind: str, document_id: object):
        self.document_id = document_id
        super().__init__(
            kind,
            document_id,
            problems=[LineProblem(code=self.code, message=f"{kind} not found: {document_id}")],
        )


def shortage_problem(
    product_id: int,
    location_id: int,
    shortfall: Decimal,
    unit: str = "",
    product_name: str | None = None,
) -> LineProblem:
    label = product_name or f"product {product_id}"
    suffix = f" {unit}" if unit else ""
    return LineProblem(
        code=StockInsufficiencyError.code,
        message=(
            f"Insufficient stock for {label} at location {location_id}: "
            f"missing {shortfall:.2f}{suffix}"
        ),
        product_id=product_id,
        location_id=location_id,
        shortfall=shortfall,
    )


def reference_problem(kind: str, reference: object) -> LineProblem:
    return LineProblem(
        code=ReferenceNotFoundError.code,
        message=f"{kind} not found: {reference}",
    )


# Ledger exceptions


class LedgerError(StockKernelError):
    """Base exception for ledger structure errors."""

    code: str = "LEDGER_ERROR"


class DuplicateLotError(LedgerError):
    """Lot identifier already present at the (product, location)."""

    code: str = "DUPLICATE_LOT"

    def __init__(self, product_id: int, location_id: int, lot: str):
        self.product_id = product_id
        self.location_id = location_id
        self.lot = lot
        super().__init__(
            f"Lot {lot} already held for product {product_id} at location {location_id}"
        )


# Document exceptions


class DocumentError(StockKernelError):
    """Base exception for business document errors."""

    code: str = "DOCUMENT_ERROR"


class InvalidStatusTransitionError(DocumentError):
    """Document cannot move from its current status to the requested one."""

    code: str = "INVALID_STATUS_TRANSITION"

    def __init__(self, kind: str, document_id: object, current: str, requested: str):
        self.kind = kind
        self.document_id = document_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"{kind} {document_id} cannot move from '{current}' to '{requested}'"
        )


class DocumentStateError(DocumentError):
    """Operation not allowed for the document in its current state."""

    code: str = "DOCUMENT_STATE"

    def __init__(self, kind: str, document_id: object, reason: str):
        self.kind = kind
        self.document_id = document_id
        self.reason = reason
        super().__init__(f"{kind} {document_id}: {reason}")
