# catalog/units.py

"""
SELLABLE UNIT

The atomic thing inventory is tracked against:
    (product_id, variant_id | None)
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass


@dataclass(frozen=True)
class SellableUnit:
    product_id: uuid.UUID
    variant_id: uuid.UUID | None = None

    @classmethod
    def of(cls, product_id, variant_id=None) -> "SellableUnit":
        pid = product_id if isinstance(product_id, uuid.UUID) else uuid.UUID(str(product_id))
        vid = None
        if variant_id not in (None, ""):
            vid = variant_id if isinstance(variant_id, uuid.UUID) else uuid.UUID(str(variant_id))
        return cls(product_id=pid, variant_id=vid)

    def as_dict(self) -> dict:
        return {
            "product_id": str(self.product_id),
            "variant_id": str(self.variant_id) if self.variant_id else None,
        }

    def __str__(self):
        return f"{self.product_id}:{self.variant_id or '-'}"
