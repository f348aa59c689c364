# catalog/services/catalog.py

"""
CATALOG SERVICE (COLLABORATOR)

Purpose:
- Source of truth for the CURRENT price and sellability of a SellableUnit.
- Cart add-time pricing and checkout price-drift detection both read from here.

Rules:
- Unknown product/variant -> NotFoundError
- Price resolution: variant.price if set, else product.base_price
- A unit is sellable only if the product is available, not archived,
  and (when scoped) the variant is active.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from catalog.models import Product, ProductVariant
from catalog.units import SellableUnit
from common.exceptions import NotFoundError
from common.money import money


@dataclass(frozen=True)
class CatalogListing:
    unit: SellableUnit
    sku: str
    title: str
    price: Decimal
    is_sellable: bool


class CatalogService:
    def get_listing(self, unit: SellableUnit) -> CatalogListing:
        product = Product.objects.filter(id=unit.product_id).first()
        if product is None:
            raise NotFoundError(f"Product {unit.product_id} not found")

        if unit.variant_id is None:
            return CatalogListing(
                unit=unit,
                sku=product.sku or f"PROD-{product.id}",
                title=product.name,
                price=money(product.base_price),
                is_sellable=product.is_sellable,
            )

        variant = ProductVariant.objects.filter(id=unit.variant_id, product_id=product.id).first()
        if variant is None:
            raise NotFoundError(f"ProductVariant {unit.variant_id} not found")

        price = variant.price if variant.price is not None else product.base_price
        return CatalogListing(
            unit=unit,
            sku=variant.sku or product.sku or f"VARIANT-{variant.id}",
            title=variant.title or product.name,
            price=money(price),
            is_sellable=product.is_sellable and bool(variant.is_active),
        )

    def get_listings(self, units) -> dict[SellableUnit, CatalogListing | None]:
        """
        Bulk variant used by checkout validation.
        Missing units map to None instead of raising, so every line can be reported.
        """
        out: dict[SellableUnit, CatalogListing | None] = {}
        for unit in units:
            try:
                out[unit] = self.get_listing(unit)
            except NotFoundError:
                out[unit] = None
        return out


def get_catalog_service() -> CatalogService:
    return CatalogService()
