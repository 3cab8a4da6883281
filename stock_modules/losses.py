"""
Losses: stock that left a location without being sold.

Manual declarations (unsold, breakage, expired, theft, customer gift)
consume FEFO at the location and are valued at the consumed lots' cost.
Transit discrepancies and inventory gaps are recorded by the transfer
and inventory services through ``record_system_loss``; their stock
effect is posted by those services.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from stock_kernel.domain.values import Numeric, round_money, to_decimal
from stock_kernel.exceptions import DocumentStateError
from stock_kernel.logging_config import get_logger
from stock_modules._document_service import DocumentService
from stock_modules.models import Loss, LossType
from stock_modules.store import DocumentKind

logger = get_logger("modules.losses")


class LossService(DocumentService):
    """Declare and query losses."""

    def declare_loss(
        self,
        loss_type: LossType,
        product_id: int,
        location_id: int,
        quantity: Numeric,
        note: str = "",
    ) -> Loss:
        """
        Declare a manual loss and remove the quantity from stock.

        Raises:
            DocumentStateError: For the system types IN_TRANSIT and
                INVENTORY_GAP.
            StockInsufficiencyError: If the location cannot cover the
                quantity; nothing is recorded.
        """
        if loss_type.is_system:
            raise DocumentStateError(
                "loss", loss_type.value, "system loss types cannot be declared manually"
            )
        quantity = to_decimal(quantity)
        if quantity <= 0:
            raise ValueError(f"Loss quantity must be positive (got {quantity})")
        product = self._catalog.product(product_id)
        self._catalog.location(location_id)

        loss_id = self._ids.next_id("PE")
        with self._bind(loss_id, "declare_loss"), self._ledger.transaction() as tx:
            result = tx.consume(
                product_id, location_id, quantity, product.stock_unit, product.name,
            )

        loss = Loss(
            id=loss_id,
            loss_type=loss_type,
            product_id=product_id,
            location_id=location_id,
            quantity=quantity,
            value=round_money(result.total_cost, self._config.currency_decimal_places),
            loss_date=self._clock.today(),
            note=note,
        )
        self._store.add(DocumentKind.LOSS, loss)
        logger.info("loss_declared", extra={
            "loss_id": loss_id,
            "loss_type": loss_type.value,
            "product_id": product_id,
            "location_id": location_id,
            "quantity": str(quantity),
            "value": str(loss.value),
        })
        return loss

    def record_system_loss(
        self,
        loss_type: LossType,
        product_id: int,
        location_id: int,
        quantity: Decimal,
        value: Decimal,
        source_ref: str,
        note: str = "",
    ) -> Loss:
        """
        Store a loss whose stock effect was already committed by the caller.

        ``value`` is rounded to the currency minor unit.
        """
        loss = Loss(
            id=self._ids.next_id("PE"),
            loss_type=loss_type,
            product_id=product_id,
            location_id=location_id,
            quantity=quantity,
            value=round_money(value, self._config.currency_decimal_places),
            loss_date=self._clock.today(),
            source_ref=source_ref,
            note=note,
        )
        self._store.add(DocumentKind.LOSS, loss)
        logger.info("system_loss_recorded", extra={
            "loss_id": loss.id,
            "loss_type": loss_type.value,
            "product_id": product_id,
            "location_id": location_id,
            "quantity": str(quantity),
            "value": str(loss.value),
            "source_ref": source_ref,
        })
        return loss

    def list_losses(
        self,
        location_id: int | None = None,
        loss_type: LossType | None = None,
        source_ref: str | None = None,
    ) -> list[Loss]:
        return self._store.list(
            DocumentKind.LOSS,
            lambda l: (
                (location_id is None or l.location_id == location_id)
                and (loss_type is None or l.loss_type == loss_type)
                and (source_ref is None or l.source_ref == source_ref)
            ),
        )

    def total_value(
        self,
        location_id: int | None = None,
        since: date | None = None,
    ) -> Decimal:
        """Summed value of losses, e.g. for a store's period report."""
        return sum(
            (
                l.value
                for l in self.list_losses(location_id=location_id)
                if since is None or l.loss_date >= since
            ),
            Decimal("0"),
        )
