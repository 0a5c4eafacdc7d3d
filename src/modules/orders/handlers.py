"""In-process consumers of order events relayed from the outbox.

They only write the audit trail to the log; notifications that must not be
lost go through Celery tasks instead.
"""

from __future__ import annotations

from typing import Tuple, Type

import structlog

from modules.orders.events import (
    OrderCancelled,
    OrderCreated,
    OrderPaid,
    OrderStatusChanged,
)
from shared.domain.bus import IEventBus, IEventHandler
from shared.domain.events import DomainEvent

logger = structlog.get_logger(__name__)


class OrderCreatedHandler(IEventHandler[OrderCreated]):
    def handle(self, event: OrderCreated) -> None:
        logger.info("order.event.created", order_id=str(event.aggregate_id))


class OrderCancelledHandler(IEventHandler[OrderCancelled]):
    def handle(self, event: OrderCancelled) -> None:
        logger.info(
            "order.event.cancelled",
            order_id=str(event.aggregate_id),
            reason=event.reason,
        )


class OrderStatusChangedHandler(IEventHandler[OrderStatusChanged]):
    def handle(self, event: OrderStatusChanged) -> None:
        logger.info(
            "order.event.status_changed",
            order_id=str(event.aggregate_id),
            transition=f"{event.old_status}->{event.new_status}",
        )


class OrderPaidHandler(IEventHandler[OrderPaid]):
    def handle(self, event: OrderPaid) -> None:
        logger.info(
            "order.event.paid",
            order_id=str(event.aggregate_id),
            transaction_ref=event.transaction_ref,
        )


order_created_handler = OrderCreatedHandler()
order_cancelled_handler = OrderCancelledHandler()
order_status_changed_handler = OrderStatusChangedHandler()
order_paid_handler = OrderPaidHandler()

SUBSCRIPTIONS: Tuple[Tuple[Type[DomainEvent], IEventHandler], ...] = (
    (OrderCreated, order_created_handler),
    (OrderCancelled, order_cancelled_handler),
    (OrderStatusChanged, order_status_changed_handler),
    (OrderPaid, order_paid_handler),
)


def subscribe_all(bus: IEventBus) -> None:
    for event_class, handler in SUBSCRIPTIONS:
        bus.subscribe(event_class, handler)
