"""SQLAlchemy ORM models — one file per table group."""

from wpintake.models.item import Item
from wpintake.models.product import Product, ProductVersion

__all__ = [
    "Item",
    "Product",
    "ProductVersion",
]
