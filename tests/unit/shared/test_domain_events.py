"""Unit tests for domain event registration and the in-memory bus."""

from __future__ import annotations

from uuid import uuid4

import pytest

from modules.orders.events import OrderCreated, OrderPaid
from modules.orders.handlers import order_paid_handler
from modules.orders.models import Order
from shared.domain.events import event_class_for
from shared.infrastructure.bus import InMemoryEventBus, event_bus

pytestmark = pytest.mark.unit


def test_order_registers_and_clears_domain_events():
    order = Order(order_number="ORD-20261019-000001")

    assert order.domain_events == []

    event = OrderCreated(aggregate_id=order.id)
    order.add_domain_event(event)

    assert order.domain_events == [event]
    assert event.event_name == "OrderCreated"

    order.clear_domain_events()
    assert order.domain_events == []


def test_event_classes_registered_by_name():
    assert event_class_for("OrderPaid") is OrderPaid
    assert event_class_for("Nope") is None


def test_bus_delivers_to_subscribed_handlers():
    received = []

    class Recorder:
        def handle(self, event):
            received.append(event)

    bus = InMemoryEventBus()
    recorder = Recorder()
    bus.subscribe(OrderPaid, recorder)
    bus.subscribe(OrderPaid, recorder)

    event = OrderPaid(aggregate_id=uuid4(), transaction_ref="R-01")
    bus.publish(event)
    bus.publish(OrderCreated(aggregate_id=uuid4()))

    assert received == [event]


def test_order_handlers_wired_at_startup():
    assert order_paid_handler in event_bus.handlers_for(OrderPaid)
