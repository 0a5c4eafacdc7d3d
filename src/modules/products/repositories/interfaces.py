"""Product repository interface.

Stock mutations (reserve on checkout, restock on cancellation) always go
through ``lock_products`` so rows are locked in primary-key order.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Dict, Iterable, Optional

from django.db import models

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.products.models import Product, ProductVariant


class IProductRepository(IRepository["Product"]):
    """Repository contract for the Product aggregate."""

    @abstractmethod
    def list(self) -> "models.QuerySet[Product]":
        """Visible (not soft-deleted) products."""

    @abstractmethod
    def get_variants(self, ids: Iterable[str]) -> Dict[str, ProductVariant]:
        """Variants keyed by ``str(id)``, with their product loaded."""

    @abstractmethod
    def lock_products(self, ids: Iterable[str]) -> Dict[str, Product]:
        """Lock the given products in PK order; returns them keyed by ``str(id)``."""

    @abstractmethod
    def get_variant(self, id: str) -> Optional[ProductVariant]:
        """Single variant lookup, ``None`` when missing."""
