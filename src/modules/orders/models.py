"""Order, OrderItem and OrderStatusHistory models.

- ``status`` and ``payment_status`` follow the machines in ``constants``;
  a cancelled order has both set to CANCELLED.
- Amounts are integers in VND; ``OrderItem.amount = quantity * unit_price``.
- ``unit_price`` is a snapshot of the variant price at checkout.
- ``idempotency_key`` is unique per user; a retry returns that user's first order.
- Orders are soft-deletable but business flows never delete them.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta
from typing import Any, Optional

import structlog
from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from modules.core.models import BaseModel, SoftDeleteModel
from modules.orders.constants import (
    ONLINE_PAYMENT_METHODS,
    ORDER_NUMBER_MAX_RETRIES,
    PAYMENT_TRANSITIONS,
    SETTLEABLE_PAYMENT_STATES,
    TERMINAL_PAYMENT_STATES,
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
)
from shared.domain.events import DomainEventMixin

logger = structlog.get_logger(__name__)


def payment_timeout() -> timedelta:
    return timedelta(minutes=settings.ORDER_PAYMENT_TIMEOUT_MINUTES)


class Order(DomainEventMixin, SoftDeleteModel):
    """Order aggregate root.

    ``order_number`` (``ORD-YYYYMMDD-XXXXXX``) is generated on first save and
    prefixes every payment transaction reference of the order.
    """

    order_number: models.CharField = models.CharField(
        max_length=20, unique=True, editable=False
    )
    user: models.ForeignKey = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="orders",
    )
    amount: models.PositiveBigIntegerField = models.PositiveBigIntegerField(default=0)
    status: models.CharField = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
    )
    payment_status: models.CharField = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
    )
    payment_method: models.CharField = models.CharField(
        max_length=20,
        choices=PaymentMethod.choices,
        default=PaymentMethod.COD,
    )
    delivery_address: models.CharField = models.CharField(max_length=500)
    notes: models.TextField = models.TextField(blank=True, default="")
    idempotency_key: models.CharField = models.CharField(
        max_length=255,
        null=True,
        blank=True,
    )

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="orders_status_idx"),
            models.Index(fields=["-created_at"], name="orders_created_idx"),
            models.Index(
                fields=["status", "payment_status", "created_at"],
                name="orders_settlement_idx",
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["user", "idempotency_key"],
                name="orders_user_idempotency_uniq",
            ),
        ]

    # ------------------------------------------------------------------
    # State machines
    # ------------------------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    @property
    def is_payment_terminal(self) -> bool:
        return self.payment_status in TERMINAL_PAYMENT_STATES

    def can_transition_to(self, new_status: str) -> bool:
        return new_status in VALID_TRANSITIONS.get(self.status, set())

    def can_transition_payment_to(self, new_status: str) -> bool:
        return new_status in PAYMENT_TRANSITIONS.get(self.payment_status, set())

    @property
    def is_online_payment(self) -> bool:
        return self.payment_method in ONLINE_PAYMENT_METHODS

    # ------------------------------------------------------------------
    # Payment window
    # ------------------------------------------------------------------

    @property
    def payment_deadline(self) -> datetime:
        return self.created_at + payment_timeout()

    def is_settleable(self, cutoff: datetime) -> bool:
        """Eligible for auto-cancellation when created at or before *cutoff*."""
        return (
            self.status == OrderStatus.PENDING
            and self.payment_status in SETTLEABLE_PAYMENT_STATES
            and self.created_at <= cutoff
        )

    def can_retry_payment(self, now: Optional[datetime] = None) -> bool:
        now = now or timezone.now()
        return (
            self.is_online_payment
            and self.status == OrderStatus.PENDING
            and self.payment_status in SETTLEABLE_PAYMENT_STATES
            and now < self.payment_deadline
        )

    def remaining_payment_minutes(self, now: Optional[datetime] = None) -> int:
        """Whole minutes left to pay, ``0`` once the window has closed."""
        now = now or timezone.now()
        if not self.can_retry_payment(now):
            return 0
        return int((self.payment_deadline - now).total_seconds() // 60)

    # ------------------------------------------------------------------
    # Order number generation
    # ------------------------------------------------------------------

    @staticmethod
    def generate_order_number() -> str:
        now = timezone.localtime()
        suffix = secrets.token_hex(3).upper()
        return f"ORD-{now:%Y%m%d}-{suffix}"

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self.order_number:
            for _ in range(ORDER_NUMBER_MAX_RETRIES):
                candidate = self.generate_order_number()
                if not Order.objects.filter(order_number=candidate).exists():
                    self.order_number = candidate
                    break
            else:
                raise RuntimeError(
                    f"Failed to generate unique order_number after "
                    f"{ORDER_NUMBER_MAX_RETRIES} attempts"
                )
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.order_number} ({self.status}/{self.payment_status})"


class OrderItem(BaseModel):
    """Line linking an order to a product variant; immutable once placed."""

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="items",
    )
    variant: models.ForeignKey = models.ForeignKey(
        "products.ProductVariant",
        on_delete=models.PROTECT,
        related_name="order_items",
    )
    quantity: models.PositiveIntegerField = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)],
    )
    unit_price: models.PositiveBigIntegerField = models.PositiveBigIntegerField()
    amount: models.PositiveBigIntegerField = models.PositiveBigIntegerField(
        editable=False
    )

    class Meta:
        db_table = "order_items"
        ordering = ["created_at"]
        constraints = [
            models.CheckConstraint(
                check=models.Q(quantity__gte=1),
                name="order_items_quantity_positive",
            ),
        ]

    def clean(self) -> None:
        super().clean()
        if self.quantity is not None and self.quantity < 1:
            raise ValidationError({"quantity": "Quantity must be at least 1."})

    def save(self, *args: Any, **kwargs: Any) -> None:
        if self.unit_price is None:
            self.unit_price = self.variant.price
        self.amount = self.quantity * self.unit_price
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.variant_id} x{self.quantity} ({self.amount} VND)"


class OrderStatusHistory(BaseModel):
    """Append-only audit trail for order status changes.

    ``user`` is ``None`` when the system made the change (settlement job,
    payment callback).
    """

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="status_history",
    )
    old_status: models.CharField = models.CharField(  # noqa: DJ01
        max_length=20,
        choices=OrderStatus.choices,
        null=True,
        blank=True,
    )
    new_status: models.CharField = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
    )
    user: models.ForeignKey = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
    )
    notes: models.TextField = models.TextField(blank=True, default="")

    class Meta:
        db_table = "order_status_history"
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["order", "-created_at"],
                name="osh_order_created_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.order_id} : {self.old_status} -> {self.new_status}"
