# inventory/services/ledger.py

"""
INVENTORY LEDGER (LEAF SERVICE)

Purpose:
- Track on-hand (quantity) and soft-held (reserved) units per SellableUnit.
- Every mutation is ONE conditional UPDATE (compare-and-increment).
  There is never a separate read followed by a separate write.

Operations:
- get_available(unit)           -> int >= 0
- reserve(unit, qty)            -> Reservation | InsufficientStockError
- release(unit, qty)            -> reserved = GREATEST(reserved - qty, 0)
- commit(unit, qty)             -> quantity -= qty, reserved -= qty (fulfillment)
- adjust_on_hand(unit, delta)   -> receive/correct stock, never below reserved
- reserve_many(requests)        -> all-or-nothing reservation of several units

Rules:
- A unit without an InventoryRecord has 0 available.
- Untracked records (is_tracked=False) are always available; reserve/release/commit
  succeed without touching the row and the Reservation holds 0 units.
- The ledger does NOT deduplicate releases. Callers (orders) track whether a hold
  was already released.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from django.db import OperationalError, transaction
from django.db.models import F, Q
from django.db.models.functions import Greatest

from catalog.units import SellableUnit
from common.exceptions import (
    ConcurrencyConflictError,
    InsufficientStockError,
    StorefrontError,
    ValidationError,
)
from common.money import to_int_qty
from inventory.models import InventoryRecord

logger = logging.getLogger(__name__)

# Reported by get_available() for untracked units.
UNLIMITED_AVAILABILITY = 2**31 - 1


@dataclass(frozen=True)
class Reservation:
    """
    A hold taken by reserve(). quantity is the number of units actually added
    to `reserved` (0 for untracked records).
    """

    unit: SellableUnit
    quantity: int
    record_id: object = None

    @property
    def holds_stock(self) -> bool:
        return self.quantity > 0


# ============================================================
# HELPERS
# ============================================================


def _unit_q(unit: SellableUnit) -> Q:
    if unit.variant_id is None:
        return Q(product_id=unit.product_id, variant__isnull=True)
    return Q(product_id=unit.product_id, variant_id=unit.variant_id)


def _positive_qty(qty) -> int:
    try:
        q = to_int_qty(qty)
    except ValueError as exc:
        raise ValidationError(str(exc), field="quantity") from exc
    if q <= 0:
        raise ValidationError("quantity must be at least 1", field="quantity")
    return q


def _shortage_line(unit: SellableUnit, *, requested: int, available: int) -> dict:
    line = unit.as_dict()
    line.update({"requested": int(requested), "available": int(available)})
    return line


def get_record(unit: SellableUnit) -> InventoryRecord | None:
    return InventoryRecord.objects.filter(_unit_q(unit)).first()


# ============================================================
# READS
# ============================================================


def get_available(unit: SellableUnit) -> int:
    record = get_record(unit)
    if record is None:
        return 0
    if not record.is_tracked:
        return UNLIMITED_AVAILABILITY
    return record.available


def is_unit_available(unit: SellableUnit, qty: int = 1) -> bool:
    return get_available(unit) >= int(qty)


def get_availability_map(units) -> dict[SellableUnit, int]:
    """
    Bulk read for checkout validation (one query).
    Units with no record map to 0.
    """
    units = list(units)
    out = {u: 0 for u in units}
    if not units:
        return out

    q = Q()
    for u in units:
        q |= _unit_q(u)

    for record in InventoryRecord.objects.filter(q):
        unit = record.unit
        if unit in out:
            out[unit] = record.available if record.is_tracked else UNLIMITED_AVAILABILITY
    return out


# ============================================================
# WRITES
# ============================================================


def reserve(unit: SellableUnit, qty) -> Reservation:
    qty = _positive_qty(qty)

    record = InventoryRecord.objects.filter(_unit_q(unit)).values("id", "is_tracked").first()
    if record is None:
        raise InsufficientStockError(
            f"Insufficient stock for {unit}",
            lines=[_shortage_line(unit, requested=qty, available=0)],
        )

    if not record["is_tracked"]:
        return Reservation(unit=unit, quantity=0, record_id=record["id"])

    try:
        with transaction.atomic():
            updated = InventoryRecord.objects.filter(
                pk=record["id"],
                is_tracked=True,
                reserved__lte=F("quantity") - qty,
            ).update(reserved=F("reserved") + qty)
    except OperationalError as exc:
        logger.warning(
            "Reservation lost a database race",
            extra={"unit": str(unit), "requested": qty},
        )
        raise ConcurrencyConflictError() from exc

    if updated != 1:
        available = get_available(unit)
        raise InsufficientStockError(
            f"Insufficient stock for {unit}. Available: {available}, Requested: {qty}",
            lines=[_shortage_line(unit, requested=qty, available=available)],
        )

    logger.info("Reserved stock", extra={"unit": str(unit), "quantity": qty})
    return Reservation(unit=unit, quantity=qty, record_id=record["id"])


def release(unit: SellableUnit, qty) -> int:
    """
    Returns the number of rows touched (0 for missing/untracked units).
    """
    qty = _positive_qty(qty)
    updated = InventoryRecord.objects.filter(_unit_q(unit), is_tracked=True).update(
        reserved=Greatest(F("reserved") - qty, 0)
    )
    if updated:
        logger.info("Released stock", extra={"unit": str(unit), "quantity": qty})
    return updated


def commit(unit: SellableUnit, qty) -> int:
    """
    Converts a held reservation into a permanent deduction.
    Raises InsufficientStockError when the hold is not (fully) present.
    """
    qty = _positive_qty(qty)

    record = InventoryRecord.objects.filter(_unit_q(unit)).values("id", "is_tracked").first()
    if record is None or not record["is_tracked"]:
        return 0

    updated = InventoryRecord.objects.filter(
        pk=record["id"],
        reserved__gte=qty,
        quantity__gte=qty,
    ).update(quantity=F("quantity") - qty, reserved=F("reserved") - qty)

    if updated != 1:
        raise InsufficientStockError(
            f"No reservation of {qty} held for {unit}",
            lines=[_shortage_line(unit, requested=qty, available=get_available(unit))],
        )

    logger.info("Committed stock", extra={"unit": str(unit), "quantity": qty})
    return updated


def adjust_on_hand(unit: SellableUnit, delta: int) -> InventoryRecord:
    """
    Receive (+delta) or correct (-delta) on-hand stock.
    Creates the record on first receipt. Never drops quantity below reserved.
    """
    if isinstance(delta, bool) or not isinstance(delta, int):
        raise ValidationError("delta must be a whole integer unit", field="delta")

    record, _ = InventoryRecord.objects.get_or_create(
        product_id=unit.product_id,
        variant_id=unit.variant_id,
    )

    if delta:
        updated = InventoryRecord.objects.filter(
            pk=record.pk,
            quantity__gte=F("reserved") - delta,
        ).update(quantity=F("quantity") + delta)

        if updated != 1:
            raise ValidationError(
                "Adjustment would drop on-hand stock below reserved units",
                field="delta",
            )

    record.refresh_from_db()
    logger.info(
        "Adjusted on-hand stock",
        extra={"unit": str(unit), "delta": delta, "quantity": record.quantity},
    )
    return record


def reserve_many(requests) -> list[Reservation]:
    """
    requests: iterable of (SellableUnit, qty)

    Units are reserved in record-id order so concurrent checkouts touching the
    same units always take row locks in the same order.
    If any reserve fails, every reservation taken in this call is released
    before the error propagates.
    """
    requests = [(unit, _positive_qty(qty)) for unit, qty in requests]

    seen = set()
    for unit, _ in requests:
        if unit in seen:
            raise ValidationError(f"Duplicate unit in reservation request: {unit}")
        seen.add(unit)

    record_ids = {}
    if requests:
        q = Q()
        for unit, _ in requests:
            q |= _unit_q(unit)
        for rec in InventoryRecord.objects.filter(q).only("id", "product_id", "variant_id"):
            record_ids[rec.unit] = str(rec.id)

    ordered = sorted(requests, key=lambda r: record_ids.get(r[0], ""))

    taken: list[Reservation] = []
    try:
        for unit, qty in ordered:
            taken.append(reserve(unit, qty))
    except StorefrontError:
        for res in reversed(taken):
            if res.holds_stock:
                release(res.unit, res.quantity)
        logger.info(
            "Rolled back partial reservation",
            extra={"released": len([r for r in taken if r.holds_stock])},
        )
        raise

    return taken
