# inventory/tests/test_ledger.py

import threading
from decimal import Decimal

from django.db import IntegrityError, connection, transaction
from django.test import TestCase, TransactionTestCase

from catalog.models import Product, ProductVariant
from catalog.units import SellableUnit
from common.exceptions import InsufficientStockError, ValidationError
from inventory.models import InventoryRecord
from inventory.services import ledger


def _product(sku: str, price: str = "10.00") -> Product:
    return Product.objects.create(sku=sku, name=sku.title(), base_price=Decimal(price))


class LedgerReserveTests(TestCase):
    """
    Inventory ledger tests.

    GUARANTEES:
    - 0 <= reserved <= quantity after every operation
    - reserve never oversells (k successes for k available)
    - release floors at zero
    - commit turns a hold into a permanent deduction
    - missing records read as 0 available
    """

    def setUp(self):
        self.product = _product("WIDGET")
        self.unit = SellableUnit.of(self.product.id)
        ledger.adjust_on_hand(self.unit, 5)

    def _record(self) -> InventoryRecord:
        return InventoryRecord.objects.get(product=self.product, variant__isnull=True)

    def _assert_invariant(self):
        rec = self._record()
        self.assertGreaterEqual(rec.reserved, 0)
        self.assertLessEqual(rec.reserved, rec.quantity)

    # =====================================================
    # READS
    # =====================================================

    def test_available_is_quantity_minus_reserved(self):
        ledger.reserve(self.unit, 2)
        self.assertEqual(ledger.get_available(self.unit), 3)

    def test_missing_record_reads_as_zero(self):
        other = SellableUnit.of(_product("GHOST").id)
        self.assertEqual(ledger.get_available(other), 0)
        self.assertFalse(ledger.is_unit_available(other))

    def test_availability_map_covers_every_unit(self):
        other = SellableUnit.of(_product("GHOST").id)
        out = ledger.get_availability_map([self.unit, other])
        self.assertEqual(out, {self.unit: 5, other: 0})

    # =====================================================
    # RESERVE
    # =====================================================

    def test_reserve_increments_reserved(self):
        res = ledger.reserve(self.unit, 3)

        self.assertEqual(res.quantity, 3)
        self.assertEqual(self._record().reserved, 3)
        self._assert_invariant()

    def test_reserve_beyond_available_fails_without_mutation(self):
        ledger.reserve(self.unit, 4)

        with self.assertRaises(InsufficientStockError) as ctx:
            ledger.reserve(self.unit, 2)

        self.assertEqual(ctx.exception.lines[0]["available"], 1)
        self.assertEqual(ctx.exception.lines[0]["requested"], 2)
        self.assertEqual(self._record().reserved, 4)
        self._assert_invariant()

    def test_reserve_without_record_is_insufficient(self):
        other = SellableUnit.of(_product("GHOST").id)
        with self.assertRaises(InsufficientStockError):
            ledger.reserve(other, 1)

    def test_reserve_rejects_non_positive_quantity(self):
        for bad in (0, -1, "abc", True):
            with self.assertRaises(ValidationError):
                ledger.reserve(self.unit, bad)

    def test_sequential_reserves_never_oversell(self):
        """
        N = 8 single-unit reserves on k = 5 available:
        exactly 5 succeed, 3 fail, reserved rises by exactly 5.
        """
        successes, failures = 0, 0
        for _ in range(8):
            try:
                ledger.reserve(self.unit, 1)
                successes += 1
            except InsufficientStockError:
                failures += 1

        self.assertEqual(successes, 5)
        self.assertEqual(failures, 3)
        self.assertEqual(self._record().reserved, 5)
        self._assert_invariant()

    def test_untracked_unit_is_always_available_and_never_reserved(self):
        rec = self._record()
        rec.is_tracked = False
        rec.save(update_fields=["is_tracked"])

        res = ledger.reserve(self.unit, 50)

        self.assertFalse(res.holds_stock)
        self.assertEqual(self._record().reserved, 0)
        self.assertTrue(ledger.is_unit_available(self.unit, 1000))

    # =====================================================
    # RELEASE / COMMIT
    # =====================================================

    def test_release_returns_units(self):
        ledger.reserve(self.unit, 3)
        ledger.release(self.unit, 2)
        self.assertEqual(self._record().reserved, 1)

    def test_release_floors_at_zero(self):
        ledger.reserve(self.unit, 1)
        ledger.release(self.unit, 10)
        self.assertEqual(self._record().reserved, 0)
        self._assert_invariant()

    def test_commit_deducts_quantity_and_reserved(self):
        ledger.reserve(self.unit, 2)
        ledger.commit(self.unit, 2)

        rec = self._record()
        self.assertEqual(rec.quantity, 3)
        self.assertEqual(rec.reserved, 0)

    def test_commit_without_hold_fails(self):
        with self.assertRaises(InsufficientStockError):
            ledger.commit(self.unit, 1)
        self.assertEqual(self._record().quantity, 5)

    # =====================================================
    # ADJUST
    # =====================================================

    def test_adjust_cannot_drop_below_reserved(self):
        ledger.reserve(self.unit, 4)
        with self.assertRaises(ValidationError):
            ledger.adjust_on_hand(self.unit, -2)
        self.assertEqual(self._record().quantity, 5)

    def test_adjust_creates_variant_record(self):
        variant = ProductVariant.objects.create(product=self.product, size="L")
        unit = SellableUnit.of(self.product.id, variant.id)

        ledger.adjust_on_hand(unit, 7)

        self.assertEqual(ledger.get_available(unit), 7)
        self.assertEqual(ledger.get_available(self.unit), 5)

    def test_reserving_down_to_threshold_flags_reorder(self):
        InventoryRecord.objects.filter(pk=self._record().pk).update(reorder_threshold=2)
        self.assertFalse(self._record().needs_reorder)

        ledger.reserve(self.unit, 3)

        self.assertTrue(self._record().needs_reorder)

    def test_database_rejects_reserved_above_quantity(self):
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                InventoryRecord.objects.filter(pk=self._record().pk).update(reserved=99)


class ReserveManyTests(TestCase):
    """
    GUARANTEES:
    - all-or-nothing: a failure on line i+1 releases lines 1..i
    """

    def setUp(self):
        self.a = SellableUnit.of(_product("A").id)
        self.b = SellableUnit.of(_product("B").id)
        self.c = SellableUnit.of(_product("C").id)
        ledger.adjust_on_hand(self.a, 10)
        ledger.adjust_on_hand(self.b, 10)
        ledger.adjust_on_hand(self.c, 1)
        ledger.reserve(self.a, 1)

    def _reserved(self, unit) -> int:
        return ledger.get_record(unit).reserved

    def test_reserves_every_unit(self):
        taken = ledger.reserve_many([(self.a, 2), (self.b, 3)])

        self.assertEqual(len(taken), 2)
        self.assertEqual(self._reserved(self.a), 3)
        self.assertEqual(self._reserved(self.b), 3)

    def test_failure_releases_earlier_reservations(self):
        with self.assertRaises(InsufficientStockError):
            ledger.reserve_many([(self.a, 2), (self.b, 3), (self.c, 5)])

        self.assertEqual(self._reserved(self.a), 1)
        self.assertEqual(self._reserved(self.b), 0)
        self.assertEqual(self._reserved(self.c), 0)

    def test_duplicate_units_rejected(self):
        with self.assertRaises(ValidationError):
            ledger.reserve_many([(self.a, 1), (self.a, 1)])


class ConcurrentReserveTests(TransactionTestCase):
    """
    Threads get their own DB connections, so this runs against the
    file-backed SQLite test database or PostgreSQL.

    GUARANTEES:
    - N concurrent reserve calls on k < N available -> exactly k successes
    """

    def setUp(self):
        if connection.vendor == "sqlite" and connection.is_in_memory_db():
            self.skipTest("threads cannot share an in-memory SQLite database")

    def test_concurrent_reserves_never_oversell(self):
        unit = SellableUnit.of(_product("HOT").id)
        ledger.adjust_on_hand(unit, 5)

        results = []
        lock = threading.Lock()
        barrier = threading.Barrier(12)

        def worker():
            try:
                barrier.wait()
                ledger.reserve(unit, 1)
                outcome = "ok"
            except InsufficientStockError:
                outcome = "short"
            finally:
                connection.close()
            with lock:
                results.append(outcome)

        threads = [threading.Thread(target=worker) for _ in range(12)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(results.count("ok"), 5)
        self.assertEqual(results.count("short"), 7)
        self.assertEqual(ledger.get_record(unit).reserved, 5)
