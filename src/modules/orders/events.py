"""Domain events for the Orders bounded context."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from shared.domain.events import DomainEvent


@dataclass(frozen=True)
class OrderCreated(DomainEvent):
    """Raised when checkout places an order."""

    topic: ClassVar[str] = "orders"


@dataclass(frozen=True)
class OrderCancelled(DomainEvent):
    """Raised when an order is cancelled by a user, staff or the settlement job."""

    topic: ClassVar[str] = "orders"
    reason: str = ""


@dataclass(frozen=True)
class OrderStatusChanged(DomainEvent):
    topic: ClassVar[str] = "orders"
    old_status: str = ""
    new_status: str = ""


@dataclass(frozen=True)
class OrderPaid(DomainEvent):
    """Raised when a provider callback settles the order as PAID."""

    topic: ClassVar[str] = "orders"
    transaction_ref: str = ""
