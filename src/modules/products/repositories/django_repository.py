"""Django ORM implementation of the Product repository.

Look-ups return ``None`` (or omit the key) for missing or malformed IDs;
the order service decides which domain exception that becomes.
"""

from __future__ import annotations

from typing import Dict, Iterable, Optional

import structlog
from django.core.exceptions import ValidationError
from django.db import models

from modules.products.models import Product, ProductVariant
from modules.products.repositories.interfaces import IProductRepository

logger = structlog.get_logger(__name__)


class ProductDjangoRepository(IProductRepository):
    """Concrete Product repository backed by Django ORM."""

    def get_by_id(self, id: str) -> Optional[Product]:
        try:
            return (
                Product.objects.alive()
                .prefetch_related("variants")
                .filter(id=id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def get_for_update(self, id: str) -> Optional[Product]:
        try:
            return Product.objects.select_for_update().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def list(self) -> "models.QuerySet[Product]":
        return Product.objects.alive().prefetch_related("variants")

    def save(self, entity: Product) -> Product:
        entity.save()
        logger.info(
            "product.saved",
            product_id=str(entity.id),
            quantity=entity.quantity,
            status=entity.status,
        )
        return entity

    def get_variant(self, id: str) -> Optional[ProductVariant]:
        try:
            return (
                ProductVariant.objects.alive()
                .select_related("product")
                .filter(id=id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def get_variants(self, ids: Iterable[str]) -> Dict[str, ProductVariant]:
        try:
            variants = (
                ProductVariant.objects.alive()
                .select_related("product")
                .filter(id__in=list(ids))
            )
            return {str(v.id): v for v in variants}
        except (ValueError, ValidationError):
            return {}

    def lock_products(self, ids: Iterable[str]) -> Dict[str, Product]:
        # PK order avoids deadlocks between concurrent checkouts/cancellations
        products = (
            Product.objects.select_for_update()
            .filter(id__in=sorted({str(i) for i in ids}))
            .order_by("id")
        )
        return {str(p.id): p for p in products}
