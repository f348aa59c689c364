"""
PATH: inventory/models/__init__.py

Inventory models export surface.
"""

from .inventory_record import InventoryRecord

__all__ = [
    "InventoryRecord",
]
