"""
PATH: catalog/models/__init__.py

Catalog models export surface.
"""

from .product import Product
from .variant import ProductVariant

__all__ = [
    "Product",
    "ProductVariant",
]
