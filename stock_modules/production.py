"""
Production orders.

A recipe lists component quantities per unit of output.  Completing an
order consumes ``component quantity * actual quantity`` of every
component FEFO at the hub and receives the output as one batch
``PROD-{order_id}``:

    unit_cost   = total component cost / actual quantity
    expiry_date = completion date + production_shelf_life_days
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import timedelta
from decimal import Decimal

from stock_engines.valuation import production_unit_cost
from stock_kernel.domain.values import Numeric, to_decimal
from stock_kernel.logging_config import get_logger
from stock_modules._document_service import DocumentService
from stock_modules.models import ProductionOrder, ProductionRecipe, RecipeLine
from stock_modules.store import DocumentKind
from stock_modules.workflows import PRODUCTION_WORKFLOW, ProductionStatus

logger = get_logger("modules.production")


class ProductionService(DocumentService):
    """Recipes and production orders at the hub."""

    def add_recipe(
        self,
        name: str,
        output_product_id: int,
        lines: Sequence[RecipeLine],
    ) -> ProductionRecipe:
        self._catalog.product(output_product_id)
        normalized = []
        for line in lines:
            self._catalog.product(line.product_id)
            if line.product_id == output_product_id:
                raise ValueError("A recipe cannot consume its own output product")
            quantity = to_decimal(line.quantity)
            if quantity <= 0:
                raise ValueError(f"Component quantity must be positive (got {quantity})")
            normalized.append(RecipeLine(line.product_id, quantity))

        recipe = ProductionRecipe(
            id=self._ids.next_id("FT"),
            name=name,
            output_product_id=output_product_id,
            lines=tuple(normalized),
        )
        self._store.add(DocumentKind.RECIPE, recipe)
        logger.info("production_recipe_added", extra={
            "recipe_id": recipe.id,
            "output_product_id": output_product_id,
            "component_count": len(recipe.lines),
        })
        return recipe

    def create_order(self, recipe_id: str, planned_quantity: Numeric) -> ProductionOrder:
        self._store.get(DocumentKind.RECIPE, recipe_id)
        planned_quantity = to_decimal(planned_quantity)
        if planned_quantity <= 0:
            raise ValueError(f"Planned quantity must be positive (got {planned_quantity})")
        order = ProductionOrder(
            id=self._ids.next_id("OF"),
            recipe_id=recipe_id,
            planned_quantity=planned_quantity,
            created_date=self._clock.today(),
        )
        self._store.add(DocumentKind.PRODUCTION_ORDER, order)
        logger.info("production_order_created", extra={
            "production_order_id": order.id,
            "recipe_id": recipe_id,
            "planned_quantity": str(planned_quantity),
        })
        return order

    def start(self, order_id: str) -> ProductionOrder:
        order = self._store.get(DocumentKind.PRODUCTION_ORDER, order_id)
        updated = self._advance(
            PRODUCTION_WORKFLOW, DocumentKind.PRODUCTION_ORDER, order, ProductionStatus.IN_PROGRESS,
        )
        logger.info("production_order_started", extra={"production_order_id": order_id})
        return updated

    def complete(self, order_id: str, actual_quantity: Numeric) -> ProductionOrder:
        """
        Consume the components and receive the output batch.

        Raises:
            ValueError: actual_quantity <= 0.
            InvalidStatusTransitionError: Order not IN_PROGRESS.
            StockInsufficiencyError: A component is short at the hub; the
                order stays IN_PROGRESS and the ledger is untouched.
        """
        actual_quantity = to_decimal(actual_quantity)
        if actual_quantity <= 0:
            raise ValueError(f"Actual quantity must be positive (got {actual_quantity})")
        order = self._store.get(DocumentKind.PRODUCTION_ORDER, order_id)
        PRODUCTION_WORKFLOW.require(order.id, order.status, ProductionStatus.COMPLETED)
        recipe = self._store.get(DocumentKind.RECIPE, order.recipe_id)

        hub_id = self._config.hub_location_id
        today = self._clock.today()
        lot = f"PROD-{order.id}"
        total_cost = Decimal("0")
        with self._bind(order.id, "complete_production"), self._ledger.transaction() as tx:
            for line in recipe.lines:
                product = self._product_in(tx, line.product_id)
                if product is None:
                    continue
                result = tx.consume(
                    line.product_id,
                    hub_id,
                    line.quantity * actual_quantity,
                    product.stock_unit,
                    product.name,
                )
                total_cost += result.total_cost
            if not tx.has_problems:
                tx.receive(
                    recipe.output_product_id,
                    hub_id,
                    actual_quantity,
                    production_unit_cost(total_cost, actual_quantity),
                    lot,
                    today + timedelta(days=self._config.production_shelf_life_days),
                    order.id,
                )

        updated = self._advance(
            PRODUCTION_WORKFLOW,
            DocumentKind.PRODUCTION_ORDER,
            order,
            ProductionStatus.COMPLETED,
            actual_quantity=actual_quantity,
            total_cost=total_cost,
            completed_date=today,
            batch_lot=lot,
        )
        logger.info("production_order_completed", extra={
            "production_order_id": order.id,
            "output_product_id": recipe.output_product_id,
            "actual_quantity": str(actual_quantity),
            "total_cost": str(total_cost),
            "unit_cost": str(updated.unit_cost),
        })
        return updated

    def get(self, order_id: str) -> ProductionOrder:
        return self._store.get(DocumentKind.PRODUCTION_ORDER, order_id)

    def get_recipe(self, recipe_id: str) -> ProductionRecipe:
        return self._store.get(DocumentKind.RECIPE, recipe_id)
