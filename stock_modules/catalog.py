"""
Catalog (``stock_modules.catalog``).

Responsibility
--------------
Resolve the references business documents carry: products (base price,
stock unit), sales units (retail unit -> base product, conversion factor,
price) and locations (hub or store).

Invariants
----------
- ``SalesUnit.factor`` is positive: one sold unit always consumes a
  positive quantity of its base product.
- ``Product.base_price`` is non-negative; it is the cost fallback for
  inventory gains at an empty location.

Failure Modes
-------------
- ``ReferenceNotFoundError`` for any unknown id.
- ``ValueError`` on invalid construction values.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from enum import Enum

from stock_kernel.domain.values import Numeric, to_decimal
from stock_kernel.exceptions import ReferenceNotFoundError
from stock_kernel.logging_config import get_logger

logger = get_logger("modules.catalog")


class ProductType(Enum):
    RAW_MATERIAL = "raw_material"
    FINISHED_GOOD = "finished_good"


class PriceType(Enum):
    VARIABLE = "variable"
    FIXED = "fixed"


class LocationType(Enum):
    HUB = "hub"
    STORE = "store"


@dataclass(frozen=True)
class Product:
    """A stocked product, counted in ``stock_unit`` (kg, piece ...)."""
    id: int
    name: str
    stock_unit: str
    base_price: Decimal
    product_type: ProductType = ProductType.RAW_MATERIAL
    price_type: PriceType = PriceType.VARIABLE

    def __post_init__(self):
        if self.base_price < 0:
            raise ValueError(f"base_price cannot be negative (got {self.base_price})")


@dataclass(frozen=True)
class SalesUnit:
    """
    A unit sold at the till, converted to its base product by ``factor``.

    e.g. "Tuna steak 250g" -> tuna, factor 0.25 (kg).
    """
    id: int
    name: str
    base_product_id: int
    price: Decimal
    factor: Decimal

    def __post_init__(self):
        if self.factor <= 0:
            raise ValueError(f"factor must be positive (got {self.factor})")
        if self.price < 0:
            raise ValueError(f"price cannot be negative (got {self.price})")

    def required_quantity(self, sold_quantity: Numeric) -> Decimal:
        """Base-product quantity consumed by selling ``sold_quantity`` units."""
        return to_decimal(sold_quantity) * self.factor


@dataclass(frozen=True)
class Location:
    """A physical stock location."""
    id: int
    name: str
    location_type: LocationType = LocationType.STORE
    is_active: bool = True


class Catalog:
    """
    In-memory catalog provider.

    Contract: every lookup either returns the entity or raises
    ``ReferenceNotFoundError``; it never returns None.
    """

    def __init__(
        self,
        products: list[Product] | None = None,
        sales_units: list[SalesUnit] | None = None,
        locations: list[Location] | None = None,
    ):
        self._products: dict[int, Product] = {}
        self._sales_units: dict[int, SalesUnit] = {}
        self._locations: dict[int, Location] = {}
        for p in products or []:
            self.add_product(p)
        for u in sales_units or []:
            self.add_sales_unit(u)
        for loc in locations or []:
            self.add_location(loc)

    # -- registration -------------------------------------------------------

    def add_product(self, product: Product) -> Product:
        self._products[product.id] = product
        logger.debug("catalog_product_added", extra={
            "product_id": product.id,
            "product_name": product.name,
        })
        return product

    def add_sales_unit(self, unit: SalesUnit) -> SalesUnit:
        self.product(unit.base_product_id)
        self._sales_units[unit.id] = unit
        return unit

    def add_location(self, location: Location) -> Location:
        self._locations[location.id] = location
        return location

    def update_base_price(self, product_id: int, base_price: Numeric) -> Product:
        product = replace(self.product(product_id), base_price=to_decimal(base_price))
        self._products[product_id] = product
        logger.info("catalog_base_price_updated", extra={
            "product_id": product_id,
            "base_price": str(product.base_price),
        })
        return product

    # -- lookups ------------------------------------------------------------

    def product(self, product_id: int) -> Product:
        try:
            return self._products[product_id]
        except KeyError:
            raise ReferenceNotFoundError("product", product_id) from None

    def sales_unit(self, unit_id: int) -> SalesUnit:
        try:
            return self._sales_units[unit_id]
        except KeyError:
            raise ReferenceNotFoundError("sales unit", unit_id) from None

    def location(self, location_id: int) -> Location:
        try:
            return self._locations[location_id]
        except KeyError:
            raise ReferenceNotFoundError("location", location_id) from None

    def products(self) -> list[Product]:
        return sorted(self._products.values(), key=lambda p: p.id)

    def locations(self) -> list[Location]:
        return sorted(self._locations.values(), key=lambda loc: loc.id)

    def resolve_sale(self, unit_id: int, sold_quantity: Numeric) -> tuple[Product, Decimal]:
        """Base product and physical quantity behind a sold quantity of a sales unit."""
        unit = self.sales_unit(unit_id)
        return self.product(unit.base_product_id), unit.required_quantity(sold_quantity)
