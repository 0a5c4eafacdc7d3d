"""Django ORM implementation of the Order repository.

Row locks use ``select_for_update()``; callers own the transaction.
``save`` writes the aggregate's pending domain events to the outbox in the
same transaction.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError
from django.db import models, transaction

from modules.core.outbox import record_domain_events
from modules.orders.constants import SETTLEABLE_PAYMENT_STATES, OrderStatus
from modules.orders.models import Order, OrderItem, OrderStatusHistory
from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)

_READ_RELATIONS = ("items__variant__product", "status_history", "payments")


class OrderDjangoRepository(IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    @transaction.atomic
    def create(self, data: Dict[str, Any]) -> Order:
        order = Order(
            user_id=data["user_id"],
            payment_method=data["payment_method"],
            payment_status=data["payment_status"],
            delivery_address=data["delivery_address"],
            idempotency_key=data.get("idempotency_key"),
            notes=data.get("notes", ""),
        )
        order.save()

        total = 0
        items = data.get("items", [])
        for item_data in items:
            item = OrderItem(
                order=order,
                variant_id=item_data["variant_id"],
                quantity=item_data["quantity"],
                unit_price=item_data["unit_price"],
            )
            item.save()
            total += item.amount

        order.amount = total
        order.save(update_fields=["amount"])

        logger.info("order.persisted", order_id=str(order.id), item_count=len(items))
        return order

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_by_id(self, id: str) -> Optional[Order]:
        """Order with eager-loaded relations; ``None`` for unknown/invalid IDs."""
        try:
            return (
                Order.objects.alive()
                .select_related("user")
                .prefetch_related(*_READ_RELATIONS)
                .filter(id=id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def get_for_update(self, id: str) -> Optional[Order]:
        """Order with a row-level lock; items (with product) are prefetched."""
        try:
            return (
                Order.objects.select_for_update()
                .prefetch_related("items__variant__product")
                .filter(id=id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> "models.QuerySet[Order]":
        queryset = (
            Order.objects.alive()
            .select_related("user")
            .prefetch_related(*_READ_RELATIONS)
        )
        if filters:
            queryset = queryset.filter(**filters)
        return queryset

    def get_by_idempotency_key(self, user_id: int, key: str) -> Optional[Order]:
        return (
            Order.objects.prefetch_related(*_READ_RELATIONS)
            .filter(user_id=user_id, idempotency_key=key)
            .first()
        )

    def settlement_candidates(
        self, cutoff: datetime, after_id: Optional[UUID], limit: int
    ) -> List[UUID]:
        queryset = Order.objects.filter(
            status=OrderStatus.PENDING,
            payment_status__in=SETTLEABLE_PAYMENT_STATES,
            created_at__lte=cutoff,
        )
        if after_id is not None:
            queryset = queryset.filter(id__gt=after_id)
        return list(queryset.order_by("id").values_list("id", flat=True)[:limit])

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    @transaction.atomic
    def save(self, entity: Order) -> Order:
        entity.save()
        events = record_domain_events(entity)
        logger.info("order.saved", order_id=str(entity.id), event_count=len(events))
        return entity

    def add_history(
        self,
        order_id: UUID,
        status: str,
        notes: str = "",
        old_status: Optional[str] = None,
        user_id: Optional[int] = None,
    ) -> OrderStatusHistory:
        history = OrderStatusHistory.objects.create(
            order_id=order_id,
            old_status=old_status,
            new_status=status,
            notes=notes,
            user_id=user_id,
        )
        logger.info(
            "order.history_added",
            order_id=str(order_id),
            old_status=old_status,
            new_status=status,
        )
        return history
