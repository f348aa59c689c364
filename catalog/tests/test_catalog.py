# catalog/tests/test_catalog.py

import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError as DjangoValidationError
from django.test import TestCase

from catalog.models import Product, ProductVariant
from catalog.services.catalog import get_catalog_service
from catalog.units import SellableUnit
from common.exceptions import NotFoundError


class CatalogServiceTests(TestCase):
    """
    Catalog lookup tests.

    GUARANTEES:
    - Variant price overrides product base price
    - Missing variant price falls back to product base price
    - Unknown units raise NotFoundError (single) or map to None (bulk)
    - Archived/unavailable products are not sellable
    """

    def setUp(self):
        self.catalog = get_catalog_service()
        self.product = Product.objects.create(
            sku="TSHIRT",
            name="T-Shirt",
            base_price=Decimal("20.00"),
        )
        self.large = ProductVariant.objects.create(
            product=self.product,
            sku="TSHIRT-L",
            size="L",
            price=Decimal("25.00"),
        )
        self.small = ProductVariant.objects.create(
            product=self.product,
            size="S",
        )

    def test_product_listing_uses_base_price(self):
        listing = self.catalog.get_listing(SellableUnit.of(self.product.id))
        self.assertEqual(listing.price, Decimal("20.00"))
        self.assertEqual(listing.sku, "TSHIRT")
        self.assertTrue(listing.is_sellable)

    def test_variant_price_overrides_base_price(self):
        listing = self.catalog.get_listing(SellableUnit.of(self.product.id, self.large.id))
        self.assertEqual(listing.price, Decimal("25.00"))
        self.assertEqual(listing.sku, "TSHIRT-L")

    def test_variant_without_price_falls_back_to_base(self):
        listing = self.catalog.get_listing(SellableUnit.of(self.product.id, self.small.id))
        self.assertEqual(listing.price, Decimal("20.00"))
        self.assertEqual(listing.sku, "TSHIRT")

    def test_unknown_product_raises_not_found(self):
        with self.assertRaises(NotFoundError):
            self.catalog.get_listing(SellableUnit.of(uuid.uuid4()))

    def test_variant_of_other_product_raises_not_found(self):
        other = Product.objects.create(sku="MUG", name="Mug", base_price=Decimal("8.00"))
        with self.assertRaises(NotFoundError):
            self.catalog.get_listing(SellableUnit.of(other.id, self.large.id))

    def test_archived_product_is_not_sellable(self):
        self.product.is_archived = True
        self.product.save(update_fields=["is_archived"])

        listing = self.catalog.get_listing(SellableUnit.of(self.product.id))
        self.assertFalse(listing.is_sellable)

    def test_inactive_variant_is_not_sellable(self):
        self.large.is_active = False
        self.large.save(update_fields=["is_active"])

        listing = self.catalog.get_listing(SellableUnit.of(self.product.id, self.large.id))
        self.assertFalse(listing.is_sellable)

    def test_bulk_listing_maps_missing_units_to_none(self):
        known = SellableUnit.of(self.product.id)
        missing = SellableUnit.of(uuid.uuid4())

        out = self.catalog.get_listings([known, missing])

        self.assertIsNotNone(out[known])
        self.assertIsNone(out[missing])

    def test_product_price_must_be_positive(self):
        p = Product(sku="FREE", name="Free thing", base_price=Decimal("0.00"))
        with self.assertRaises(DjangoValidationError):
            p.full_clean()


class SellableUnitTests(TestCase):
    def test_units_with_same_ids_are_equal(self):
        pid = uuid.uuid4()
        self.assertEqual(SellableUnit.of(pid), SellableUnit.of(str(pid), ""))

    def test_as_dict_serializes_ids(self):
        pid, vid = uuid.uuid4(), uuid.uuid4()
        self.assertEqual(
            SellableUnit.of(pid, vid).as_dict(),
            {"product_id": str(pid), "variant_id": str(vid)},
        )
