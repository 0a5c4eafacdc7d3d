"""Product catalog: products carry stock, variants carry the sale price.

Rules:
- ``sku`` is unique and stored upper-cased.
- ``quantity`` never goes negative.
- For IN_STOCK / SOLD_OUT products every stock mutation keeps
  ``status == SOLD_OUT`` exactly when ``quantity == 0``. PRE_SALE products
  are not buyable and keep their status.
- Prices are integers in VND.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

import structlog
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from modules.core.models import SoftDeleteModel

logger = structlog.get_logger(__name__)


class ProductStatus(models.TextChoices):
    IN_STOCK = "IN_STOCK", "Còn hàng"
    SOLD_OUT = "SOLD_OUT", "Hết hàng"
    PRE_SALE = "PRE_SALE", "Đặt trước"


class Product(SoftDeleteModel):
    """Product aggregate root holding the shared stock of all its variants."""

    sku = models.CharField(max_length=64, unique=True)
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    base_price = models.PositiveBigIntegerField(default=0)
    quantity = models.PositiveIntegerField(default=0)
    status = models.CharField(
        max_length=20,
        choices=ProductStatus.choices,
        default=ProductStatus.IN_STOCK,
    )

    class Meta:
        db_table = "products"
        ordering = ["name"]
        indexes = [
            models.Index(fields=["status"], name="products_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                check=models.Q(quantity__gte=0),
                name="products_quantity_non_negative",
            ),
        ]

    # ------------------------------------------------------------------
    # Stock
    # ------------------------------------------------------------------

    @property
    def is_available(self) -> bool:
        return not self.is_deleted and self.status == ProductStatus.IN_STOCK

    def reserve(self, quantity: int) -> None:
        """Deduct *quantity* from stock, flipping to SOLD_OUT at zero.

        The caller must hold a row lock and have checked availability.
        """
        if quantity < 1 or quantity > self.quantity:
            raise ValidationError(
                {"quantity": f"Cannot reserve {quantity} of {self.quantity}."}
            )
        self.quantity -= quantity
        if self.quantity == 0 and self.status == ProductStatus.IN_STOCK:
            self.status = ProductStatus.SOLD_OUT

    def restock(self, quantity: int) -> None:
        """Return *quantity* to stock, flipping SOLD_OUT back to IN_STOCK."""
        if quantity < 1:
            raise ValidationError({"quantity": "Restock quantity must be positive."})
        self.quantity += quantity
        if self.status == ProductStatus.SOLD_OUT and self.quantity > 0:
            self.status = ProductStatus.IN_STOCK

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, *args, **kwargs) -> None:
        if self.sku:
            self.sku = self.sku.strip().upper()
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.sku} - {self.name}"


class ProductVariant(SoftDeleteModel):
    """Sellable size of a product with its own price and optional sale window."""

    product = models.ForeignKey(
        "products.Product",
        on_delete=models.PROTECT,
        related_name="variants",
    )
    size = models.CharField(max_length=20)
    price = models.PositiveBigIntegerField()
    start_date = models.DateTimeField(null=True, blank=True)
    end_date = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "product_variants"
        ordering = ["product_id", "size"]
        constraints = [
            models.UniqueConstraint(
                fields=["product", "size"],
                name="product_variants_product_size_uniq",
            ),
        ]

    def is_on_sale(self, at: Optional[datetime] = None) -> bool:
        """``True`` when *at* (default now) falls inside the sale window."""
        at = at or timezone.now()
        if self.start_date and at < self.start_date:
            return False
        if self.end_date and at > self.end_date:
            return False
        return True

    def __str__(self) -> str:
        return f"{self.product.sku} / {self.size}"
