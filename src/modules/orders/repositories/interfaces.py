"""Order repository interface.

Extends ``IRepository[Order]`` with what the order aggregate needs:
atomic creation with items, status history, idempotency-key look-up and
the keyset scan used by the settlement job.
"""

from __future__ import annotations

from abc import abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from uuid import UUID

from django.db import models

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.orders.models import Order, OrderStatusHistory


class IOrderRepository(IRepository["Order"]):
    """Repository contract for the Order aggregate root."""

    @abstractmethod
    def create(self, data: Dict[str, Any]) -> Order:
        """Create an order with its items atomically.

        ``data`` must include ``user_id``, ``payment_method``,
        ``payment_status``, ``delivery_address`` and ``items`` (dicts with
        ``variant_id``, ``quantity``, ``unit_price``).
        """

    @abstractmethod
    def list(self, filters: Optional[Dict[str, Any]] = None) -> "models.QuerySet[Order]":
        """Orders with optional ORM filters, relations eager-loaded."""

    @abstractmethod
    def add_history(
        self,
        order_id: UUID,
        status: str,
        notes: str = "",
        old_status: Optional[str] = None,
        user_id: Optional[int] = None,
    ) -> OrderStatusHistory:
        """Record a status change in the order's audit trail."""

    @abstractmethod
    def get_by_idempotency_key(self, user_id: int, key: str) -> Optional[Order]:
        """Retrieve the user's order placed under *key*; keys are per user."""

    @abstractmethod
    def settlement_candidates(
        self, cutoff: datetime, after_id: Optional[UUID], limit: int
    ) -> List[UUID]:
        """IDs of unpaid orders created at or before *cutoff*, ascending.

        Keyset pagination: only IDs greater than *after_id* are returned.
        """
