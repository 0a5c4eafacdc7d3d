"""Read-side catalog service."""

from __future__ import annotations

from typing import TYPE_CHECKING

from modules.products.exceptions import ProductNotFound

if TYPE_CHECKING:
    from django.db.models import QuerySet

    from modules.products.models import Product
    from modules.products.repositories.interfaces import IProductRepository


class ProductService:
    def __init__(self, repository: IProductRepository) -> None:
        self._repo = repository

    def list_products(self) -> QuerySet[Product]:
        return self._repo.list()

    def get_product(self, product_id: str) -> Product:
        """Raises ``ProductNotFound`` for missing or soft-deleted products."""
        product = self._repo.get_by_id(product_id)
        if not product:
            raise ProductNotFound(f"Product {product_id} not found.")
        return product
